"""
Diagnostic notification fan-out.

All collaborator activity (credential loading, trust store updates, chain
validation problems, VOMS request and protocol events) is reported through an
``InitListeners`` bundle holding one handler per concern. Handlers default to
no-ops and are isolated from control flow: an exception raised by a handler is
logged and otherwise ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Sequence

logger = logging.getLogger(__name__)

CREDENTIAL_LOAD = "credential_load"
STORE_UPDATE = "store_update"
VALIDATION_ERROR = "validation_error"
VALIDATION_RESULT = "validation_result"
VOMS_TRUST_STORE = "voms_trust_store"
SERVER_INFO_STORE = "server_info_store"
REQUEST = "request"
PROTOCOL = "protocol"
PROXY_CREATED = "proxy_created"

CHANNELS = (
    CREDENTIAL_LOAD,
    STORE_UPDATE,
    VALIDATION_ERROR,
    VALIDATION_RESULT,
    VOMS_TRUST_STORE,
    SERVER_INFO_STORE,
    REQUEST,
    PROTOCOL,
    PROXY_CREATED,
)


@dataclass
class DiagnosticEvent:
    """A single diagnostic notification."""
    channel: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


def _noop(*args: Any, **kwargs: Any) -> None:
    return None


@dataclass
class InitListeners:
    """Handlers for every diagnostic concern of a proxy initialization run.

    ``validation_result`` receives a ``ValidationResult``; ``proxy_created``
    receives ``(path, proxy, warnings)``; every other handler receives a
    ``DiagnosticEvent``.
    """
    credential_load: Callable[[DiagnosticEvent], None] = _noop
    store_update: Callable[[DiagnosticEvent], None] = _noop
    validation_error: Callable[[DiagnosticEvent], None] = _noop
    validation_result: Callable[[Any], None] = _noop
    voms_trust_store: Callable[[DiagnosticEvent], None] = _noop
    server_info_store: Callable[[DiagnosticEvent], None] = _noop
    request: Callable[[DiagnosticEvent], None] = _noop
    protocol: Callable[[DiagnosticEvent], None] = _noop
    proxy_created: Callable[[str, Any, Sequence[str]], None] = _noop

    def emit(self, channel: str, *args: Any) -> None:
        """Invoke the handler registered for ``channel``."""
        if channel not in CHANNELS:
            raise ValueError(f"Unknown notification channel: {channel}")
        handler = getattr(self, channel)
        try:
            handler(*args)
        except Exception as e:
            logger.warning(f"Listener for '{channel}' raised {e!r}; ignoring")

    def notify(self, channel: str, message: str, **details: Any) -> None:
        """Emit a ``DiagnosticEvent`` on a diagnostic channel."""
        self.emit(channel, DiagnosticEvent(channel=channel, message=message, details=details))


def logging_listeners(log: logging.Logger = logger, level: int = logging.DEBUG) -> InitListeners:
    """Build a listener bundle that writes every notification to ``log``."""

    def _log_event(event: DiagnosticEvent) -> None:
        log.log(level, f"[{event.channel}] {event.message}")

    def _log_validation(result: Any) -> None:
        if getattr(result, "valid", False):
            log.log(level, "[validation_result] certificate chain is valid")
        else:
            errors = "; ".join(getattr(result, "errors", ()) or ())
            log.warning(f"[validation_result] certificate chain is not valid: {errors}")

    def _log_created(path: str, proxy: Any, warnings: Sequence[str]) -> None:
        log.info(f"Proxy created: {path}")
        for warning in warnings:
            log.warning(warning)

    return InitListeners(
        credential_load=_log_event,
        store_update=_log_event,
        validation_error=_log_event,
        validation_result=_log_validation,
        voms_trust_store=_log_event,
        server_info_store=_log_event,
        request=_log_event,
        protocol=_log_event,
        proxy_created=_log_created,
    )


__all__ = [
    "DiagnosticEvent",
    "InitListeners",
    "logging_listeners",
    "CHANNELS",
]
