"""
X.509 certificates binding identities to Ed25519 signing keys.

The identity issuer is a small certificate authority: one self-signed
root, and one end-entity certificate per identity whose common name is
the identity id.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from verivote.core.security import load_private_key, load_public_key


CERTIFICATE_VALIDITY_DAYS = 365


def _name(common_name: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "verivote"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def create_root_certificate(issuer_private_pem: str, common_name: str = "verivote identity issuer") -> str:
    """Create the self-signed issuer certificate."""
    key = load_private_key(issuer_private_pem)
    now = datetime.now(timezone.utc)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(common_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=CERTIFICATE_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .sign(key, algorithm=None)
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode()


def issue_certificate(
    issuer_private_pem: str,
    issuer_certificate_pem: str,
    identity: str,
    subject_public_pem: str
) -> str:
    """Issue an end-entity certificate for identity's public key."""
    issuer_key = load_private_key(issuer_private_pem)
    issuer_cert = x509.load_pem_x509_certificate(issuer_certificate_pem.encode())
    now = datetime.now(timezone.utc)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(_name(identity))
        .issuer_name(issuer_cert.subject)
        .public_key(load_public_key(subject_public_pem))
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=CERTIFICATE_VALIDITY_DAYS))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(issuer_key, algorithm=None)
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode()


def certificate_identity(certificate_pem: str) -> Optional[str]:
    """Return the common name of a certificate."""
    cert = x509.load_pem_x509_certificate(certificate_pem.encode())
    names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return names[0].value if names else None


def certificate_public_key(certificate_pem: str) -> str:
    """Public key PEM carried by a certificate."""
    cert = x509.load_pem_x509_certificate(certificate_pem.encode())
    return cert.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()


def verify_certificate(
    certificate_pem: str,
    issuer_certificate_pem: str,
    identity: str,
    public_pem: Optional[str] = None
) -> bool:
    """
    Check that certificate_pem was issued by the issuer for identity,
    is inside its validity period and, when given, certifies public_pem.
    """
    try:
        cert = x509.load_pem_x509_certificate(certificate_pem.encode())
        issuer = x509.load_pem_x509_certificate(issuer_certificate_pem.encode())
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False

    now = datetime.now(timezone.utc)
    if not (cert.not_valid_before_utc <= now <= cert.not_valid_after_utc):
        return False

    if certificate_identity(certificate_pem) != identity:
        return False

    if public_pem is not None and certificate_public_key(certificate_pem).strip() != public_pem.strip():
        return False

    return True
