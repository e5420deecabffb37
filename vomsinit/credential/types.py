"""Credential type shared by every stage of a run."""

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]


@dataclass(frozen=True)
class Credential:
    """Certificate chain (end entity first) and the matching private key."""
    chain: Tuple[x509.Certificate, ...]
    private_key: PrivateKey
    source: str = ""

    def __post_init__(self):
        if not self.chain:
            raise ValueError("credential chain must not be empty")
        object.__setattr__(self, "chain", tuple(self.chain))

    @property
    def certificate(self) -> x509.Certificate:
        return self.chain[0]

    @property
    def not_after(self) -> datetime:
        """End of validity of the end-entity certificate (aware, UTC)."""
        return self.certificate.not_valid_after_utc

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()


__all__ = ["Credential", "PrivateKey"]
