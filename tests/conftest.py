"""
Shared fixtures: generated certificate chains and local TLS servers.
"""

import socket
import ssl
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def _name(cn: str, serial_number: Optional[str] = None) -> x509.Name:
    attrs = [
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ]
    if serial_number:
        attrs.append(x509.NameAttribute(NameOID.SERIAL_NUMBER, serial_number))
    return x509.Name(attrs)


def build_chain(
    lifetimes_days: List[float], issuer_serials: Optional[List[str]] = None
) -> List[Tuple[x509.Certificate, ec.EllipticCurvePrivateKey]]:
    """
    Build a chain of ``len(lifetimes_days)`` certificates, leaf first.

    The last certificate is a self-signed root, every other one is signed by
    the next. ``lifetimes_days[i]`` is the remaining lifetime of certificate
    ``i``; negative values give expired certificates.
    """
    now = datetime.now(timezone.utc)
    count = len(lifetimes_days)
    serials = issuer_serials or [f"SN-{i}" for i in range(count)]
    keys = [ec.generate_private_key(ec.SECP256R1()) for _ in range(count)]
    names = [_name(f"cert-{i}", serials[i]) for i in range(count)]
    names[0] = _name("leaf.example.svc")

    certs: List[Optional[x509.Certificate]] = [None] * count
    for i in reversed(range(count)):
        issuer_index = min(i + 1, count - 1)
        not_after = now + timedelta(days=lifetimes_days[i])
        builder = (
            x509.CertificateBuilder()
            .subject_name(names[i])
            .issuer_name(names[issuer_index])
            .public_key(keys[i].public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(min(now, not_after) - timedelta(days=30))
            .not_valid_after(not_after)
            .add_extension(x509.BasicConstraints(ca=i > 0, path_length=None), critical=True)
        )
        certs[i] = builder.sign(keys[issuer_index], hashes.SHA256())

    return [(cert, key) for cert, key in zip(certs, keys)]  # type: ignore[misc]


@pytest.fixture
def chain_factory():
    """Factory for generated certificate chains."""
    return build_chain


@pytest.fixture
def server_pem_files(tmp_path):
    """
    Write a leaf plus intermediate chain and the leaf key for a TLS test server.

    The root stays off the wire, so the two served certificates have distinct
    issuers (cert-1/SN-1 and cert-2/SN-2).
    """
    chain = build_chain([90, 365, 3650])[:2]
    cert_path = tmp_path / "chain.pem"
    key_path = tmp_path / "leaf.key"

    cert_path.write_bytes(
        b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert, _ in chain)
    )
    key_path.write_bytes(
        chain[0][1].private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return cert_path, key_path, [cert for cert, _ in chain]


class LocalServer:
    """Accepts connections on 127.0.0.1 in a background thread."""

    def __init__(self, handler):
        self.handler = handler
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(5)
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]
        self.received = []
        self.chain = []
        self._running = True
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *exc):
        self._running = False
        self._thread.join(timeout=2)
        self.sock.close()

    def _serve(self):
        while self._running:
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2)
                try:
                    self.handler(self, conn)
                except (OSError, ssl.SSLError):
                    pass


def tls_handler(context):
    """Handler completing the handshake and recording the first bytes sent."""

    def handle(server, conn):
        with context.wrap_socket(conn, server_side=True) as tls_conn:
            server.received.append(tls_conn.recv(16))

    return handle


@pytest.fixture
def local_server():
    """Factory for plain local servers driven by a custom handler."""
    return LocalServer


@pytest.fixture
def tls_server(server_pem_files):
    """TLS server on 127.0.0.1 serving the leaf plus root chain."""
    cert_path, key_path, chain = server_pem_files
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(str(cert_path), str(key_path))
    with LocalServer(tls_handler(context)) as server:
        server.chain = chain
        yield server
