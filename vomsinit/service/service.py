"""
Proxy initialization service.

This module provides the service that orchestrates one proxy initialization
run: source the base credential, validate it when required, acquire and
verify VOMS attribute certificates, reconcile the proxy lifetime with the
issuing credential, then generate and persist the proxy.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..attributes import (
    ACValidatorFactory,
    AttributeAcquisitionLoop,
    AttributeCertificate,
    AttributeServiceFactory,
    parse_voms_commands,
)
from ..config import InitParams, default_proxy_path
from ..credential import (
    Credential,
    LoaderFactory,
    PasswordSource,
    load_credential,
    password_source_from_params,
    resolve_credential_source,
)
from ..errors import ProxyGenerationError, ProxyInitError
from ..events import PROXY_CREATED, InitListeners
from ..metrics import MetricsRegistry, get_registry
from ..proxy import (
    CredentialPersistence,
    GeneratedProxy,
    PemCredentialPersistence,
    ProxyGenerator,
    X509ProxyGenerator,
    build_proxy_options,
    clamp_lifetime,
)
from ..validation import ChainValidator, ChainValidatorFactory, ValidationGate

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Collaborators:
    """External collaborators of a run; everything has a default except the VOMS side."""
    chain_validator: Optional[ChainValidator] = None
    chain_validator_factory: Optional[ChainValidatorFactory] = None
    attribute_service_factory: Optional[AttributeServiceFactory] = None
    ac_validator_factory: Optional[ACValidatorFactory] = None
    proxy_generator: ProxyGenerator = field(default_factory=X509ProxyGenerator)
    persistence: CredentialPersistence = field(default_factory=PemCredentialPersistence)
    credential_loader_factory: Optional[LoaderFactory] = None
    password_source: Optional[PasswordSource] = None
    commands_parser: Callable = parse_voms_commands
    now_func: Callable[[], datetime] = _utcnow
    environ: Optional[Mapping[str, str]] = None


@dataclass
class ProxyInitResult:
    """Successful outcome of a run."""
    path: str
    warnings: Tuple[str, ...]
    proxy: GeneratedProxy
    attribute_certificates: Tuple[AttributeCertificate, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "warnings": list(self.warnings),
            "subject": self.proxy.certificate.subject.rfc4514_string(),
            "not_after": self.proxy.certificate.not_valid_after_utc.isoformat(),
            "vos": [ac.vo_name for ac in self.attribute_certificates],
        }


class ProxyInitService:
    """
    Runs proxy initialization requests.

    Each call to ``init_proxy`` is an independent single-shot pipeline; the
    chain validator is memoized for the duration of one run only.
    """

    def __init__(self, collaborators: Optional[Collaborators] = None,
                 listeners: Optional[InitListeners] = None,
                 metrics: Optional[MetricsRegistry] = None):
        self.collaborators = collaborators or Collaborators()
        self.listeners = listeners or InitListeners()
        self.metrics = metrics or get_registry()

    def init_proxy(self, params: InitParams) -> ProxyInitResult:
        """
        Create a proxy credential.

        Args:
            params: Initialization parameters

        Returns:
            Path of the written proxy, warnings and the generated proxy

        Raises:
            ProxyInitError: On any fatal condition; no proxy file is left behind
        """
        try:
            return self._run(params)
        except ProxyInitError as e:
            self.metrics.observe_failure(e.code)
            logger.error(f"Proxy initialization failed: {e}")
            raise

    def _run(self, params: InitParams) -> ProxyInitResult:
        c = self.collaborators
        credential = self.lookup_credential(params)

        gate = ValidationGate(params, c.chain_validator, c.chain_validator_factory,
                              self.listeners, c.environ)
        if ValidationGate.required(params):
            gate.check(credential)

        acs: List[AttributeCertificate] = []
        if params.requests_attributes:
            loop = AttributeAcquisitionLoop(params, c.attribute_service_factory, self.listeners,
                                            c.commands_parser, c.environ, self.metrics)
            acs = loop.acquire(credential, gate.validator())
            if params.verify_ac and acs:
                acs = loop.verify(acs, gate.validator(), c.ac_validator_factory)

        return self.create_proxy(params, credential, acs)

    def lookup_credential(self, params: InitParams) -> Credential:
        c = self.collaborators
        source = resolve_credential_source(params)
        logger.debug(f"Credential source: {source!r}")
        password_source = c.password_source or password_source_from_params(params)
        return load_credential(source, password_source, self.listeners, c.environ,
                               c.credential_loader_factory)

    def create_proxy(self, params: InitParams, credential: Credential,
                     acs: List[AttributeCertificate]) -> ProxyInitResult:
        """Clamp the lifetime, generate the proxy and persist it."""
        c = self.collaborators
        warnings: List[str] = []

        now = c.now_func()
        lifetime, warning = clamp_lifetime(params.proxy_lifetime, credential.not_after, now)
        if warning:
            warnings.append(warning)

        options = build_proxy_options(params, credential.chain, lifetime, acs, not_before=now)
        path = params.generated_proxy_file or default_proxy_path(c.environ)
        existed = os.path.exists(path)

        try:
            proxy = c.proxy_generator.generate(options, credential.private_key)
            c.persistence.save(path, proxy)
        except Exception as e:
            if not existed and os.path.exists(path):
                os.unlink(path)
            raise ProxyGenerationError(f"Error creating proxy certificate: {e}", e) from e

        result = ProxyInitResult(path=path, warnings=tuple(warnings), proxy=proxy,
                                 attribute_certificates=tuple(acs))
        self.metrics.observe_created(params.proxy_type.value)
        logger.info(f"Proxy certificate created: {path}")
        self.listeners.emit(PROXY_CREATED, path, proxy, result.warnings)
        return result


def create_service(**kwargs) -> ProxyInitService:
    """
    Factory function to create a proxy initialization service.

    Args:
        **kwargs: ``listeners`` and ``metrics`` go to the service, everything
            else is a ``Collaborators`` field

    Returns:
        Configured service instance
    """
    listeners = kwargs.pop("listeners", None)
    metrics = kwargs.pop("metrics", None)
    return ProxyInitService(Collaborators(**kwargs), listeners=listeners, metrics=metrics)


def init_proxy(params: InitParams, **kwargs) -> ProxyInitResult:
    """Run a single proxy initialization with a freshly created service."""
    return create_service(**kwargs).init_proxy(params)
