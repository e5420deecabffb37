"""
Error taxonomy for proxy initialization.

Every fatal condition of a run surfaces as exactly one ``ProxyInitError``
subclass carrying a message and, where available, the underlying cause.
"""

from typing import Any, Dict, Optional


class ProxyInitError(Exception):
    """Base class for fatal proxy initialization errors."""

    code = "proxy_init_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class CredentialLookupError(ProxyInitError):
    """No usable base credential (missing, malformed, wrong password, unreadable)."""

    code = "credential_lookup"


class CredentialValidationError(ProxyInitError):
    """The user credential chain failed trust validation."""

    code = "credential_validation"


class AttributeAcquisitionError(ProxyInitError):
    """VOMS attributes were requested but could not be obtained."""

    code = "attribute_acquisition"


class ACValidationError(ProxyInitError):
    """Collected attribute certificates failed verification."""

    code = "ac_validation"


class ProxyGenerationError(ProxyInitError):
    """Proxy assembly, signing or persistence failed."""

    code = "proxy_generation"


__all__ = [
    "ProxyInitError",
    "CredentialLookupError",
    "CredentialValidationError",
    "AttributeAcquisitionError",
    "ACValidationError",
    "ProxyGenerationError",
]
