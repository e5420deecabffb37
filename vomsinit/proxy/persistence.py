"""Writes generated proxies to disk."""

import contextlib
import logging
import os
import tempfile
from typing import Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .generator import GeneratedProxy

logger = logging.getLogger(__name__)


class CredentialPersistence(Protocol):
    def save(self, path: str, proxy: GeneratedProxy) -> None:
        ...  # pragma: no cover - interface placeholder


def proxy_pem(proxy: GeneratedProxy) -> bytes:
    """Proxy certificate, then its unencrypted key, then the issuer chain."""
    key_format = serialization.PrivateFormat.TraditionalOpenSSL \
        if isinstance(proxy.private_key, rsa.RSAPrivateKey) else serialization.PrivateFormat.PKCS8
    parts = [
        proxy.certificate.public_bytes(serialization.Encoding.PEM),
        proxy.private_key.private_bytes(serialization.Encoding.PEM, key_format, serialization.NoEncryption()),
    ]
    parts.extend(cert.public_bytes(serialization.Encoding.PEM) for cert in proxy.issuer_chain)
    return b"".join(parts)


class PemCredentialPersistence:
    """Owner-only PEM file written through a temporary file and renamed into place."""

    def save(self, path: str, proxy: GeneratedProxy) -> None:
        data = proxy_pem(proxy)
        directory = os.path.dirname(os.path.abspath(path))
        fd, tmp_path = tempfile.mkstemp(prefix=".x509up.", dir=directory)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Proxy written to {path}")


__all__ = ["CredentialPersistence", "PemCredentialPersistence", "proxy_pem"]
