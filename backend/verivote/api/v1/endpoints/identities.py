"""
Identity issuance API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, status

from verivote.core.exceptions import ProtocolError
from verivote.services.identity_service import CredentialStore, IdentityIssuer
from verivote.schemas.identity import IdentityCredential, IdentityIssueRequest, IdentityResponse
from verivote.api.v1.deps import get_credential_store, get_identity_issuer, http_error, require_admin


router = APIRouter()


@router.post(
    "",
    response_model=IdentityCredential,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)]
)
async def issue_identity(
    request: IdentityIssueRequest,
    issuer: IdentityIssuer = Depends(get_identity_issuer)
) -> IdentityCredential:
    """
    Issue the single signing credential of an identity.

    When no public key is supplied a key pair is generated and the
    private key is returned in this response only.
    """
    try:
        return await issuer.issue(request.identity, request.public_key_pem)
    except ProtocolError as e:
        raise http_error(e)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Public key must be an Ed25519 PEM key"
        )


@router.get("/{identity}", response_model=IdentityResponse)
async def lookup_identity(
    identity: str,
    credentials: CredentialStore = Depends(get_credential_store)
) -> IdentityResponse:
    """Look up the public key and certificate of an identity."""
    record = await credentials.lookup(identity)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Identity not found"
        )

    return IdentityResponse(
        identity=record.id,
        public_key_pem=record.public_key_pem,
        certificate_pem=record.certificate_pem,
        issued_at=record.issued_at,
    )
