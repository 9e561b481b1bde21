"""
Identity issuance schemas.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class IdentityIssueRequest(BaseModel):
    """Request to issue a signing credential for an identity."""

    identity: str = Field(..., min_length=1, max_length=128, description="Opaque identity id")
    public_key_pem: Optional[str] = Field(
        None,
        description="Device-generated Ed25519 public key; a key pair is generated when omitted"
    )


class IdentityCredential(BaseModel):
    """Identity issuance output: (identity, publicKey, certificate)."""

    identity: str = Field(..., description="Identity id")
    public_key_pem: str = Field(..., description="Ed25519 public key (PEM)")
    certificate_pem: str = Field(..., description="X.509 certificate signed by the issuer")
    private_key_pem: Optional[str] = Field(
        None,
        description="Generated private key, returned once and never stored"
    )


class IdentityResponse(BaseModel):
    """Credential store lookup result."""

    identity: str
    public_key_pem: str
    certificate_pem: str
    issued_at: datetime
