"""Proxy certificate options and delegation policy selection."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Tuple

from cryptography import x509

from ..attributes import AttributeCertificate
from ..config import InitParams, ProxyType


class ProxyPolicy(Enum):
    """Delegation policy languages, valued by their OID."""
    INHERIT_ALL = "1.3.6.1.5.5.7.21.1"
    LIMITED = "1.3.6.1.4.1.3536.1.1.1.9"

    @property
    def oid(self) -> str:
        return self.value


def select_policy(proxy_type: ProxyType, limited: bool) -> Optional[ProxyPolicy]:
    """Policy for RFC3820 and draft proxies; legacy proxies carry none."""
    if proxy_type in (ProxyType.RFC3820, ProxyType.DRAFT_RFC):
        return ProxyPolicy.LIMITED if limited else ProxyPolicy.INHERIT_ALL
    return None


@dataclass(frozen=True)
class ProxyOptions:
    issuer_chain: Tuple[x509.Certificate, ...]
    lifetime: int
    key_size: int
    proxy_type: ProxyType = ProxyType.RFC3820
    limited: bool = False
    path_len_constraint: Optional[int] = None
    policy: Optional[ProxyPolicy] = None
    attribute_certificates: Tuple[AttributeCertificate, ...] = field(default=())
    # Start of validity; the generator samples its own clock when unset
    not_before: Optional[datetime] = None

    @property
    def issuer(self) -> x509.Certificate:
        return self.issuer_chain[0]


def build_proxy_options(params: InitParams, issuer_chain: Sequence[x509.Certificate], lifetime: int,
                        attribute_certificates: Sequence[AttributeCertificate] = (),
                        not_before: Optional[datetime] = None) -> ProxyOptions:
    return ProxyOptions(
        issuer_chain=tuple(issuer_chain),
        lifetime=lifetime,
        key_size=params.key_size,
        proxy_type=params.proxy_type,
        limited=params.limited,
        path_len_constraint=params.path_len_constraint,
        policy=select_policy(params.proxy_type, params.limited),
        attribute_certificates=tuple(attribute_certificates or ()),
        not_before=not_before,
    )


__all__ = ["ProxyPolicy", "ProxyOptions", "select_policy", "build_proxy_options"]
