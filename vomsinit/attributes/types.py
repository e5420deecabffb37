"""
VOMS attribute request types and collaborator contracts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple

from ..credential import Credential


@dataclass(frozen=True)
class AttributeRequest:
    """What is asked of a single VO."""
    vo_name: str
    fqans: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()
    lifetime: int = 0


@dataclass(frozen=True)
class AttributeCertificate:
    """A signed attribute certificate, kept as opaque DER bytes."""
    vo_name: str
    der: bytes
    fqans: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        if not self.der:
            raise ValueError("attribute certificate must not be empty")


class AttributeService(Protocol):
    """Fetches an attribute certificate from a VOMS server.

    Returns None when the server produced no certificate for the request.
    Timeouts are expressed in seconds.
    """

    def request(self, credential: Credential, request: AttributeRequest,
                connect_timeout: float, read_timeout: float) -> Optional[AttributeCertificate]:
        ...  # pragma: no cover - interface placeholder


# (chain_validator, vomses_lookup, listeners) -> AttributeService
AttributeServiceFactory = Callable[[Any, Any, Any], AttributeService]

# (voms_dir, chain_validator, listeners) -> ACValidator
ACValidatorFactory = Callable[[str, Any, Any], Any]


__all__ = [
    "AttributeRequest",
    "AttributeCertificate",
    "AttributeService",
    "AttributeServiceFactory",
    "ACValidatorFactory",
]
