"""
Credential loaders backed by ``cryptography``.

Each loader reads one credential layout from disk:

- ``PemCredentialLoader``: PEM certificate chain plus a (possibly encrypted) PEM key
- ``Pkcs12CredentialLoader``: PKCS#12 bundle
- ``ProxyCredentialLoader``: proxy file holding certificate, key and chain in one PEM
- ``DiscoveryCredentialLoader``: conventional locations tried in order

All loaders share the ``load(password_source) -> Credential`` contract and raise
``CredentialLookupError`` for every failure.
"""

import logging
import os
import re
import tempfile
from typing import Callable, List, Mapping, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from ..config import (
    PKCS12_USER_CERT,
    X509_USER_CERT,
    X509_USER_KEY,
    X509_USER_PROXY,
    default_proxy_file_name,
)
from ..errors import CredentialLookupError
from ..events import CREDENTIAL_LOAD, InitListeners
from .types import Credential, PrivateKey

logger = logging.getLogger(__name__)

PasswordSource = Callable[[], Optional[bytes]]

_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----.+?-----END (?P=label)-----", re.DOTALL
)
_CERT_LABELS = {b"CERTIFICATE", b"X509 CERTIFICATE", b"TRUSTED CERTIFICATE"}
_KEY_LABELS = {b"PRIVATE KEY", b"RSA PRIVATE KEY", b"EC PRIVATE KEY", b"ENCRYPTED PRIVATE KEY"}


def _read(path: str) -> bytes:
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as e:
        raise CredentialLookupError(f"Cannot read credential file {path}: {e.strerror}", e) from e


def _pem_blocks(data: bytes, labels) -> List[bytes]:
    return [m.group(0) for m in _PEM_BLOCK.finditer(data) if m.group("label") in labels]


def parse_certificates(data: bytes, origin: str = "") -> List[x509.Certificate]:
    """Parse every PEM certificate block found in ``data``."""
    certs = []
    for block in _pem_blocks(data, _CERT_LABELS):
        try:
            certs.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            raise CredentialLookupError(f"Malformed certificate in {origin or 'input'}: {e}", e) from e
    if not certs:
        raise CredentialLookupError(f"No certificate found in {origin or 'input'}")
    return certs


def parse_private_key(data: bytes, password_source: PasswordSource, origin: str = "") -> PrivateKey:
    """Parse the first PEM private key in ``data``, asking for a password only if encrypted."""
    blocks = _pem_blocks(data, _KEY_LABELS)
    if not blocks:
        raise CredentialLookupError(f"No private key found in {origin or 'input'}")
    block = blocks[0]
    try:
        return serialization.load_pem_private_key(block, password=None)
    except TypeError:
        # Key is encrypted
        pass
    except ValueError as e:
        raise CredentialLookupError(f"Malformed private key in {origin or 'input'}: {e}", e) from e

    password = password_source()
    if not password:
        raise CredentialLookupError(f"A password is required to decrypt the key in {origin}")
    try:
        return serialization.load_pem_private_key(block, password=password)
    except (TypeError, ValueError) as e:
        raise CredentialLookupError(f"Cannot decrypt private key in {origin}: wrong password?", e) from e


def _public_der(key_or_cert) -> bytes:
    return key_or_cert.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def _credential(chain: List[x509.Certificate], key: PrivateKey, source: str) -> Credential:
    if _public_der(chain[0]) != _public_der(key):
        raise CredentialLookupError(f"Private key does not match certificate in {source}")
    return Credential(chain=tuple(chain), private_key=key, source=source)


class PemCredentialLoader:
    """Certificate chain and key stored in separate PEM files."""

    def __init__(self, cert_file: str, key_file: str, listeners: Optional[InitListeners] = None):
        self.cert_file = cert_file
        self.key_file = key_file
        self.listeners = listeners or InitListeners()

    def load(self, password_source: PasswordSource) -> Credential:
        self.listeners.notify(CREDENTIAL_LOAD, f"Loading credential from {self.cert_file}, {self.key_file}",
                              cert_file=self.cert_file, key_file=self.key_file)
        chain = parse_certificates(_read(self.cert_file), self.cert_file)
        key = parse_private_key(_read(self.key_file), password_source, self.key_file)
        credential = _credential(chain, key, self.cert_file)
        self.listeners.notify(CREDENTIAL_LOAD, f"Credential loaded: {credential.subject}",
                              subject=credential.subject)
        return credential


class Pkcs12CredentialLoader:
    """PKCS#12 bundle holding certificate, key and optional CA certificates."""

    def __init__(self, path: str, listeners: Optional[InitListeners] = None):
        self.path = path
        self.listeners = listeners or InitListeners()

    def load(self, password_source: PasswordSource) -> Credential:
        self.listeners.notify(CREDENTIAL_LOAD, f"Loading PKCS12 credential from {self.path}", path=self.path)
        data = _read(self.path)
        try:
            key, cert, extra = pkcs12.load_key_and_certificates(data, password_source())
        except ValueError as e:
            raise CredentialLookupError(f"Cannot load PKCS12 credential {self.path}: wrong password?", e) from e
        if key is None or cert is None:
            raise CredentialLookupError(f"PKCS12 file {self.path} lacks a certificate or a private key")
        credential = _credential([cert] + list(extra or []), key, self.path)
        self.listeners.notify(CREDENTIAL_LOAD, f"Credential loaded: {credential.subject}",
                              subject=credential.subject)
        return credential


class ProxyCredentialLoader:
    """An existing proxy file: certificate, unencrypted key, then the issuer chain."""

    def __init__(self, path: str, listeners: Optional[InitListeners] = None):
        self.path = path
        self.listeners = listeners or InitListeners()

    def load(self, password_source: PasswordSource) -> Credential:
        self.listeners.notify(CREDENTIAL_LOAD, f"Loading proxy credential from {self.path}", path=self.path)
        data = _read(self.path)
        chain = parse_certificates(data, self.path)
        key = parse_private_key(data, password_source, self.path)
        credential = _credential(chain, key, self.path)
        self.listeners.notify(CREDENTIAL_LOAD, f"Credential loaded: {credential.subject}",
                              subject=credential.subject)
        return credential


class DiscoveryCredentialLoader:
    """Try the conventional credential locations, first hit wins.

    Order: ``X509_USER_CERT``/``X509_USER_KEY``, ``PKCS12_USER_CERT``,
    ``X509_USER_PROXY``, ``~/.globus/usercert.pem``/``userkey.pem``,
    ``~/.globus/usercred.p12``, ``<tmpdir>/x509up_u<uid>``.
    """

    def __init__(self, home: Optional[str] = None, tmpdir: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 listeners: Optional[InitListeners] = None):
        self.environ = os.environ if environ is None else environ
        self.home = home or os.path.expanduser("~")
        self.tmpdir = tmpdir or tempfile.gettempdir()
        self.listeners = listeners or InitListeners()

    def candidates(self) -> List[Tuple[str, object]]:
        env = self.environ
        globus = os.path.join(self.home, ".globus")
        found: List[Tuple[str, object]] = []
        if env.get(X509_USER_CERT) and env.get(X509_USER_KEY):
            found.append(("pem", (env[X509_USER_CERT], env[X509_USER_KEY])))
        if env.get(PKCS12_USER_CERT):
            found.append(("pkcs12", env[PKCS12_USER_CERT]))
        if env.get(X509_USER_PROXY):
            found.append(("proxy", env[X509_USER_PROXY]))
        found.append(("pem", (os.path.join(globus, "usercert.pem"), os.path.join(globus, "userkey.pem"))))
        found.append(("pkcs12", os.path.join(globus, "usercred.p12")))
        found.append(("proxy", os.path.join(self.tmpdir, default_proxy_file_name())))
        return found

    def _exists(self, kind: str, location) -> bool:
        if kind == "pem":
            return all(os.path.isfile(p) for p in location)
        return os.path.isfile(location)

    def _loader(self, kind: str, location):
        if kind == "pem":
            return PemCredentialLoader(location[0], location[1], self.listeners)
        if kind == "pkcs12":
            return Pkcs12CredentialLoader(location, self.listeners)
        return ProxyCredentialLoader(location, self.listeners)

    def load(self, password_source: PasswordSource) -> Credential:
        """Load the first candidate that exists and loads cleanly.

        A candidate that exists but fails to load is reported on the
        ``credential_load`` channel and the search moves on.
        """
        last_error: Optional[CredentialLookupError] = None
        for kind, location in self.candidates():
            self.listeners.notify(CREDENTIAL_LOAD, f"Looking for {kind} credential in {location}",
                                  kind=kind, location=location)
            if not self._exists(kind, location):
                continue
            try:
                return self._loader(kind, location).load(password_source)
            except CredentialLookupError as e:
                logger.warning(f"Cannot use {kind} credential in {location}: {e}")
                self.listeners.notify(CREDENTIAL_LOAD, f"Skipping {kind} credential in {location}: {e}",
                                      kind=kind, location=location, error=str(e))
                last_error = e
        if last_error is not None:
            raise CredentialLookupError(f"No usable credentials found: {last_error}", last_error)
        logger.error("No credentials found in the conventional locations")
        raise CredentialLookupError("No credentials found!")


__all__ = [
    "PasswordSource",
    "PemCredentialLoader",
    "Pkcs12CredentialLoader",
    "ProxyCredentialLoader",
    "DiscoveryCredentialLoader",
    "parse_certificates",
    "parse_private_key",
]
