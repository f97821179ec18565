"""
TLS prober for TLS Verifier.

Opens a TCP connection, performs a TLS handshake without verifying the peer
and returns the certificate chain it presented.
"""

import socket
import ssl
from dataclasses import dataclass, field
from typing import Any, List, Optional

from cryptography import x509

LIVENESS_PAYLOAD = b"ping\n"


class ProbeError(Exception):
    """Base class for per-target probe failures."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConnectFailure(ProbeError):
    """The TCP connection could not be established."""


class HandshakeFailure(ProbeError):
    """The TLS handshake did not complete."""


class WriteFailure(ProbeError):
    """Writing the liveness payload after the handshake failed."""


@dataclass
class HandshakeResult:
    """Peer chain (leaf first) and the failure, if any."""

    chain: List[x509.Certificate] = field(default_factory=list)
    error: Optional[ProbeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TLSProber:
    """
    Blocking TLS prober.

    The handshake accepts any certificate: self-signed, expired or issued for
    another name. Both the TCP connect and the handshake are bounded by the
    timeout passed to ``probe``.
    """

    def __init__(self, payload: bytes = LIVENESS_PAYLOAD):
        self.payload = payload
        self._context = self._create_ssl_context()

    @staticmethod
    def _create_ssl_context() -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    def probe(self, host: str, port: int, timeout: float) -> HandshakeResult:
        """
        Probe ``host:port``.

        Args:
            host: Host name or IP address
            port: TCP port
            timeout: Seconds allowed for connect and for the handshake

        Returns:
            HandshakeResult with the peer chain or a classified error
        """
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except (OSError, OverflowError, ValueError) as e:
            # ValueError covers IDNA encoding errors on unusual host names
            return HandshakeResult(
                error=ConnectFailure(f"could not connect to {host}:{port}: {e}", e)
            )

        with sock:
            try:
                ssock = self._context.wrap_socket(sock, server_hostname=host)
            except (ssl.SSLError, OSError) as e:
                return HandshakeResult(
                    error=HandshakeFailure(f"TLS handshake with {host}:{port} failed: {e}", e)
                )

            with ssock:
                try:
                    chain = _peer_chain(ssock)
                except ValueError as e:
                    return HandshakeResult(
                        error=HandshakeFailure(
                            f"unreadable certificate from {host}:{port}: {e}", e
                        )
                    )
                try:
                    ssock.sendall(self.payload)
                except OSError as e:
                    return HandshakeResult(
                        chain=chain,
                        error=WriteFailure(f"could not send data to {host}:{port}: {e}", e),
                    )

                return HandshakeResult(chain=chain)


def _peer_chain(ssock: ssl.SSLSocket) -> List[x509.Certificate]:
    """
    Return the chain the peer sent, leaf first.

    ``SSLSocket.get_unverified_chain`` is public from Python 3.13 and returns
    DER bytes; 3.10 to 3.12 only expose it on the internal ``_sslobj`` where it
    returns certificate objects. Older interpreters only give the leaf.
    """
    getter = getattr(ssock, "get_unverified_chain", None)
    if getter is None:
        getter = getattr(getattr(ssock, "_sslobj", None), "get_unverified_chain", None)

    if getter is not None:
        raw_chain = getter() or []
        if raw_chain:
            return [_load_certificate(item) for item in raw_chain]

    der = ssock.getpeercert(binary_form=True)
    return [x509.load_der_x509_certificate(der)] if der else []


def _load_certificate(item: Any) -> x509.Certificate:
    if isinstance(item, (bytes, bytearray)):
        return x509.load_der_x509_certificate(bytes(item))
    # _ssl.Certificate: PEM text by default
    return x509.load_pem_x509_certificate(item.public_bytes().encode("ascii"))
