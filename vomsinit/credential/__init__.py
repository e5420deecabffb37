"""
Credential package: the Credential type, file loaders and sourcing strategies.
"""

from .types import Credential, PrivateKey
from .loader import (
    PasswordSource,
    PemCredentialLoader,
    Pkcs12CredentialLoader,
    ProxyCredentialLoader,
    DiscoveryCredentialLoader,
    parse_certificates,
    parse_private_key,
)
from .sourcing import (
    CredentialSource,
    LoaderFactory,
    ReuseProxySource,
    Pkcs12Source,
    PemPairSource,
    DiscoverySource,
    resolve_credential_source,
    StdinPasswordSource,
    PromptPasswordSource,
    password_source_from_params,
    loader_for,
    load_credential,
)

__all__ = [
    "Credential",
    "PrivateKey",
    "PasswordSource",
    "PemCredentialLoader",
    "Pkcs12CredentialLoader",
    "ProxyCredentialLoader",
    "DiscoveryCredentialLoader",
    "parse_certificates",
    "parse_private_key",
    "CredentialSource",
    "LoaderFactory",
    "ReuseProxySource",
    "Pkcs12Source",
    "PemPairSource",
    "DiscoverySource",
    "resolve_credential_source",
    "StdinPasswordSource",
    "PromptPasswordSource",
    "password_source_from_params",
    "loader_for",
    "load_credential",
]
