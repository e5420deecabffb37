"""
Base credential sourcing.

``resolve_credential_source`` turns InitParams into exactly one tagged source
variant, evaluated in a fixed priority order:

1. ``no_regen``                -> ReuseProxySource
2. cert file without key file  -> Pkcs12Source
3. cert file and key file      -> PemPairSource
4. otherwise                   -> DiscoverySource

The variant is resolved once and then mapped to a loader; nothing downstream
looks at the raw flags again.
"""

from __future__ import annotations

import getpass
import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, TextIO, Union

from ..config import InitParams, default_proxy_path
from ..errors import CredentialLookupError
from ..events import InitListeners
from .loader import (
    DiscoveryCredentialLoader,
    PasswordSource,
    PemCredentialLoader,
    Pkcs12CredentialLoader,
    ProxyCredentialLoader,
)
from .types import Credential

logger = logging.getLogger(__name__)

DEFAULT_PASSWORD_PROMPT = "Enter GRID pass phrase for this identity:"


@dataclass(frozen=True)
class ReuseProxySource:
    """Reuse an already generated proxy as signing credential."""
    path: Optional[str] = None


@dataclass(frozen=True)
class Pkcs12Source:
    path: str


@dataclass(frozen=True)
class PemPairSource:
    cert_file: str
    key_file: str


@dataclass(frozen=True)
class DiscoverySource:
    """Search the conventional locations under ``home`` and ``tmpdir``."""
    home: Optional[str] = None
    tmpdir: Optional[str] = None


CredentialSource = Union[ReuseProxySource, Pkcs12Source, PemPairSource, DiscoverySource]

# (source, listeners, environ) -> object with load(password_source)
LoaderFactory = Callable[[CredentialSource, InitListeners, Optional[Mapping[str, str]]], Any]


def resolve_credential_source(params: InitParams) -> CredentialSource:
    if params.no_regen:
        return ReuseProxySource()
    if params.cert_file and not params.key_file:
        return Pkcs12Source(params.cert_file)
    if params.cert_file and params.key_file:
        return PemPairSource(params.cert_file, params.key_file)
    return DiscoverySource()


class StdinPasswordSource:
    """Reads the password as one line from a stream, without prompting."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._password: Optional[bytes] = None
        self._consumed = False

    def __call__(self) -> Optional[bytes]:
        if not self._consumed:
            stream = self._stream if self._stream is not None else sys.stdin
            line = stream.readline()
            self._password = line.rstrip("\r\n").encode("utf-8") if line else None
            self._consumed = True
        return self._password


class PromptPasswordSource:
    """Asks interactively with a masked prompt, at most once."""

    def __init__(self, prompt: str = DEFAULT_PASSWORD_PROMPT,
                 reader: Callable[[str], str] = getpass.getpass):
        self.prompt = prompt
        self._reader = reader
        self._password: Optional[bytes] = None
        self._asked = False

    def __call__(self) -> Optional[bytes]:
        if not self._asked:
            self._asked = True
            try:
                self._password = self._reader(self.prompt).encode("utf-8")
            except (EOFError, KeyboardInterrupt) as e:
                raise CredentialLookupError("Password entry aborted", e) from e
        return self._password


def password_source_from_params(params: InitParams, stream: Optional[TextIO] = None) -> PasswordSource:
    if params.read_password_from_stdin:
        return StdinPasswordSource(stream)
    return PromptPasswordSource()


def loader_for(source: CredentialSource, listeners: Optional[InitListeners] = None,
               environ: Optional[Mapping[str, str]] = None):
    """Map a resolved source variant to its loader."""
    listeners = listeners or InitListeners()
    if isinstance(source, ReuseProxySource):
        return ProxyCredentialLoader(source.path or default_proxy_path(environ), listeners)
    if isinstance(source, Pkcs12Source):
        return Pkcs12CredentialLoader(source.path, listeners)
    if isinstance(source, PemPairSource):
        return PemCredentialLoader(source.cert_file, source.key_file, listeners)
    if isinstance(source, DiscoverySource):
        return DiscoveryCredentialLoader(source.home, source.tmpdir, environ, listeners)
    raise TypeError(f"Unsupported credential source: {source!r}")


def load_credential(source: CredentialSource, password_source: PasswordSource,
                    listeners: Optional[InitListeners] = None,
                    environ: Optional[Mapping[str, str]] = None,
                    loader_factory: Optional[LoaderFactory] = None) -> Credential:
    """Load the base credential for ``source``.

    Raises:
        CredentialLookupError: If no usable credential can be loaded
    """
    loader = (loader_factory or loader_for)(source, listeners or InitListeners(), environ)
    try:
        credential = loader.load(password_source)
    except CredentialLookupError:
        raise
    except Exception as e:
        raise CredentialLookupError(f"Error loading credential: {e}", e) from e
    if credential is None:
        raise CredentialLookupError("No credentials found!")
    logger.info(f"Loaded credential {credential.subject} from {credential.source or type(source).__name__}")
    return credential


__all__ = [
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
