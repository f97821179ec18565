"""
Expiration extraction for peer certificate chains.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from cryptography import x509
from cryptography.x509.oid import NameOID

from tls_verifier.models import CertificateRecord


def extract(
    chain: Optional[Sequence[x509.Certificate]], now: Optional[datetime] = None
) -> List[CertificateRecord]:
    """
    Map each certificate of a chain to its expiration record.

    Records keep the chain order (leaf first). ``seconds_to_expiration`` is
    negative for certificates that already expired.

    Args:
        chain: Peer certificates as returned by the handshake
        now: Reference time, defaults to the current UTC time

    Returns:
        One CertificateRecord per certificate, or an empty list for
        malformed input
    """
    if not chain:
        return []

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    try:
        return [_to_record(cert, now) for cert in chain]
    except (AttributeError, TypeError, ValueError):
        return []


def _to_record(cert: x509.Certificate, now: datetime) -> CertificateRecord:
    not_after = cert.not_valid_after_utc
    return CertificateRecord(
        issuer_common_name=_issuer_attribute(cert, NameOID.COMMON_NAME),
        issuer_serial_number=_issuer_attribute(cert, NameOID.SERIAL_NUMBER),
        not_after=not_after,
        seconds_to_expiration=(not_after - now).total_seconds(),
    )


def _issuer_attribute(cert: x509.Certificate, oid: x509.ObjectIdentifier) -> str:
    attrs = cert.issuer.get_attributes_for_oid(oid)
    if not attrs:
        return ""
    value = attrs[0].value
    return value if isinstance(value, str) else value.decode("utf-8")
