"""Validation results and validator contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Sequence

from cryptography import x509


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "details": dict(self.details)}


class ChainValidator(Protocol):
    """Validates an X.509 certificate chain (end entity first)."""

    def validate(self, chain: Sequence[x509.Certificate]) -> ValidationResult:
        ...  # pragma: no cover - interface placeholder


class ACValidator(Protocol):
    """Validates VOMS attribute certificates."""

    def validate(self, certificates: Sequence[Any]) -> ValidationResult:
        ...  # pragma: no cover - interface placeholder


__all__ = ["ValidationResult", "ChainValidator", "ACValidator"]
