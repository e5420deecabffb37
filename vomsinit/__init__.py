"""
vomsinit Python Package

Orchestration of X.509 proxy credential creation with VOMS attribute
certificates.
"""

__version__ = "0.1.0"

from .config import InitParams, ProxyType, AcquisitionMode, params_from_args
from .errors import (
    ProxyInitError,
    CredentialLookupError,
    CredentialValidationError,
    AttributeAcquisitionError,
    ACValidationError,
    ProxyGenerationError,
)
from .events import InitListeners, DiagnosticEvent, logging_listeners
from .service import ProxyInitService, Collaborators, ProxyInitResult, create_service, init_proxy

__all__ = [
    "InitParams",
    "ProxyType",
    "AcquisitionMode",
    "params_from_args",
    "ProxyInitError",
    "CredentialLookupError",
    "CredentialValidationError",
    "AttributeAcquisitionError",
    "ACValidationError",
    "ProxyGenerationError",
    "InitListeners",
    "DiagnosticEvent",
    "logging_listeners",
    "ProxyInitService",
    "Collaborators",
    "ProxyInitResult",
    "create_service",
    "init_proxy",
]
