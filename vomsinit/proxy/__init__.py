"""
Proxy package: options and policy selection, lifetime clamping, generation
and persistence.
"""

from .options import ProxyPolicy, ProxyOptions, select_policy, build_proxy_options
from .lifetime import clamp_lifetime, LIFETIME_LIMITED_WARNING
from .generator import (
    GeneratedProxy,
    ProxyGenerator,
    X509ProxyGenerator,
    encode_proxy_cert_info,
    encode_attribute_certificates,
    RFC3820_PROXY_CERT_INFO_OID,
    DRAFT_PROXY_CERT_INFO_OID,
    VOMS_AC_EXTENSION_OID,
)
from .persistence import CredentialPersistence, PemCredentialPersistence, proxy_pem

__all__ = [
    "ProxyPolicy",
    "ProxyOptions",
    "select_policy",
    "build_proxy_options",
    "clamp_lifetime",
    "LIFETIME_LIMITED_WARNING",
    "GeneratedProxy",
    "ProxyGenerator",
    "X509ProxyGenerator",
    "encode_proxy_cert_info",
    "encode_attribute_certificates",
    "RFC3820_PROXY_CERT_INFO_OID",
    "DRAFT_PROXY_CERT_INFO_OID",
    "VOMS_AC_EXTENSION_OID",
    "CredentialPersistence",
    "PemCredentialPersistence",
    "proxy_pem",
]
