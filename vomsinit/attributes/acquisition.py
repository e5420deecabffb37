"""
Attribute certificate acquisition.

One request is issued per VO named in the commands, strictly in order of
first appearance. A VO that returns no certificate is tolerated as long as at
least one VO produced one (best effort, the default); ``FAIL_FAST`` turns any
such VO into a fatal error instead.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Iterable, List, Mapping, Optional

from ..config import AcquisitionMode, InitParams, resolve_voms_dir
from ..credential import Credential
from ..errors import ACValidationError, AttributeAcquisitionError
from ..events import REQUEST, VALIDATION_RESULT, VOMS_TRUST_STORE, InitListeners
from ..metrics import MetricsRegistry, get_registry
from .commands import parse_voms_commands
from .lookup import vomses_lookup_for
from .types import (
    ACValidatorFactory,
    AttributeCertificate,
    AttributeRequest,
    AttributeServiceFactory,
)

logger = logging.getLogger(__name__)


def order_fqans(preferred: Iterable[str], requested: Iterable[str]) -> List[str]:
    """Preferred FQANs first, then the requested ones, duplicates dropped by first occurrence."""
    return list(OrderedDict.fromkeys(list(preferred) + list(requested)))


class AttributeAcquisitionLoop:
    """Requests attribute certificates for every VO in the run's commands."""

    def __init__(self, params: InitParams,
                 service_factory: Optional[AttributeServiceFactory] = None,
                 listeners: Optional[InitListeners] = None,
                 commands_parser: Callable = parse_voms_commands,
                 environ: Optional[Mapping[str, str]] = None,
                 metrics: Optional[MetricsRegistry] = None):
        self.params = params
        self.service_factory = service_factory
        self.listeners = listeners or InitListeners()
        self.commands_parser = commands_parser
        self.environ = environ
        self.metrics = metrics or get_registry()

    def build_requests(self) -> List[AttributeRequest]:
        """One request per VO, in order of first appearance."""
        try:
            commands = self.commands_parser(self.params.voms_commands)
        except ValueError as e:
            raise AttributeAcquisitionError(f"Invalid VOMS request: {e}", e) from e
        return [
            AttributeRequest(
                vo_name=vo_name,
                fqans=tuple(order_fqans(self.params.fqan_order, fqans)),
                targets=tuple(self.params.targets),
                lifetime=self.params.ac_lifetime,
            )
            for vo_name, fqans in commands.items()
        ]

    def _absent(self, request: AttributeRequest, reason: str, cause: Optional[BaseException] = None) -> None:
        self.listeners.notify(REQUEST, f"No attribute certificate obtained for VO {request.vo_name}: {reason}",
                              vo=request.vo_name, reason=reason)
        if self.params.acquisition_mode == AcquisitionMode.FAIL_FAST:
            raise AttributeAcquisitionError(
                f"Attribute request for VO {request.vo_name} could not be fulfilled: {reason}", cause
            )
        logger.warning(f"No attribute certificate obtained for VO {request.vo_name}: {reason}")

    def acquire(self, credential: Credential, chain_validator) -> List[AttributeCertificate]:
        """Run the per-VO request loop.

        Args:
            credential: The loaded user credential
            chain_validator: Validator used by the service to check VOMS servers

        Returns:
            Collected attribute certificates, in VO order

        Raises:
            AttributeAcquisitionError: If VOs were requested and nothing could be collected
        """
        requests = self.build_requests()
        if not requests:
            return []
        if self.service_factory is None:
            raise AttributeAcquisitionError("No attribute service configured for VOMS requests")

        timeout = float(self.params.timeout)
        collected: List[AttributeCertificate] = []

        for request in requests:
            self.listeners.notify(REQUEST, f"Requesting attributes from VO {request.vo_name}",
                                  vo=request.vo_name, fqans=list(request.fqans))
            try:
                lookup = vomses_lookup_for(self.params.vomses_locations, self.environ)
                service = self.service_factory(chain_validator, lookup, self.listeners)
                certificate = service.request(credential, request, timeout, timeout)
            except Exception as e:
                self.metrics.observe_ac_request("error")
                self._absent(request, str(e) or e.__class__.__name__, e)
                continue

            if certificate is None:
                self.metrics.observe_ac_request("absent")
                self._absent(request, "no certificate returned")
                continue

            self.metrics.observe_ac_request("success")
            self.listeners.notify(REQUEST, f"Received attribute certificate from VO {request.vo_name}",
                                  vo=request.vo_name)
            collected.append(certificate)

        if not collected:
            logger.error("None of the requested VOs returned an attribute certificate")
            raise AttributeAcquisitionError("User's request for VOMS attributes could not be fulfilled.")
        return collected

    def verify(self, certificates: List[AttributeCertificate], chain_validator,
               validator_factory: Optional[ACValidatorFactory]) -> List[AttributeCertificate]:
        """Check collected certificates against the VOMS trust store.

        Raises:
            ACValidationError: If verification fails or no validator is available
        """
        if not certificates:
            return certificates
        if validator_factory is None:
            raise ACValidationError("No attribute certificate validator configured")

        voms_dir = resolve_voms_dir(self.environ)
        self.listeners.notify(VOMS_TRUST_STORE, f"Using VOMS trust directory {voms_dir}", directory=voms_dir)
        try:
            validator = validator_factory(voms_dir, chain_validator, self.listeners)
            result = validator.validate(certificates)
        except Exception as e:
            raise ACValidationError(f"Error validating attribute certificates: {e}", e) from e
        self.listeners.emit(VALIDATION_RESULT, result)
        if not result.valid:
            logger.error(f"Attribute certificate validation failed: {'; '.join(result.errors)}")
            raise ACValidationError("Attribute certificate validation failed: " + "; ".join(result.errors))
        return certificates


__all__ = ["AttributeAcquisitionLoop", "order_fqans"]
