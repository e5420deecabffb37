"""
Proxy certificate generation.

``X509ProxyGenerator`` issues a proxy certificate signed by the user's key:

- a fresh RSA key pair of the requested size
- subject = issuer subject + one CN (the serial number for RFC3820 and draft
  proxies, "proxy" or "limited proxy" for legacy ones)
- a critical ProxyCertInfo extension carrying the path length constraint and
  the policy language (RFC3820 and draft proxies only)
- the VOMS attribute certificate extension when attributes were collected
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, Sequence, Tuple

from asn1crypto import core
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ed448, ed25519, rsa
from cryptography.x509.oid import NameOID

from ..attributes import AttributeCertificate
from ..config import ProxyType
from ..credential import Credential, PrivateKey
from .options import ProxyOptions, ProxyPolicy

logger = logging.getLogger(__name__)

RFC3820_PROXY_CERT_INFO_OID = "1.3.6.1.5.5.7.1.14"
DRAFT_PROXY_CERT_INFO_OID = "1.3.6.1.4.1.3536.1.222"
VOMS_AC_EXTENSION_OID = "1.3.6.1.4.1.8005.100.100.5"

LEGACY_PROXY_CN = "proxy"
LEGACY_LIMITED_PROXY_CN = "limited proxy"


class _ProxyPolicyAsn1(core.Sequence):
    _fields = [
        ("policy_language", core.ObjectIdentifier),
        ("policy", core.OctetString, {"optional": True}),
    ]


class _ProxyCertInfoAsn1(core.Sequence):
    """RFC 3820: pathlen first, then the policy."""
    _fields = [
        ("path_len_constraint", core.Integer, {"optional": True}),
        ("proxy_policy", _ProxyPolicyAsn1),
    ]


class _DraftProxyCertInfoAsn1(core.Sequence):
    """GT3 draft: policy first, then an explicitly tagged pathlen."""
    _fields = [
        ("proxy_policy", _ProxyPolicyAsn1),
        ("path_len_constraint", core.Integer, {"explicit": 1, "optional": True}),
    ]


class _ACSequence(core.SequenceOf):
    _child_spec = core.Any


class _ACSequences(core.SequenceOf):
    _child_spec = _ACSequence


def encode_proxy_cert_info(proxy_type: ProxyType, policy: ProxyPolicy,
                           path_len_constraint: Optional[int] = None) -> bytes:
    value = {"proxy_policy": {"policy_language": policy.oid}}
    if path_len_constraint is not None and path_len_constraint >= 0:
        value["path_len_constraint"] = path_len_constraint
    if proxy_type == ProxyType.DRAFT_RFC:
        return _DraftProxyCertInfoAsn1(value).dump()
    return _ProxyCertInfoAsn1(value).dump()


def encode_attribute_certificates(certificates: Sequence[AttributeCertificate]) -> bytes:
    return _ACSequences([_ACSequence([core.Any.load(ac.der) for ac in certificates])]).dump()


@dataclass(frozen=True)
class GeneratedProxy:
    """A freshly issued proxy certificate, its key and the issuer chain."""
    certificate: x509.Certificate
    private_key: PrivateKey
    issuer_chain: Tuple[x509.Certificate, ...]

    @property
    def chain(self) -> Tuple[x509.Certificate, ...]:
        return (self.certificate,) + tuple(self.issuer_chain)

    @property
    def credential(self) -> Credential:
        return Credential(chain=self.chain, private_key=self.private_key, source="generated")


class ProxyGenerator(Protocol):
    def generate(self, options: ProxyOptions, signing_key: PrivateKey) -> GeneratedProxy:
        ...  # pragma: no cover - interface placeholder


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rsa_key(key_size: int) -> PrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def _signature_hash(key: PrivateKey) -> Optional[hashes.HashAlgorithm]:
    if isinstance(key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return hashes.SHA256()


class X509ProxyGenerator:
    """Issues proxy certificates with ``cryptography``."""

    def __init__(self, now_func: Callable[[], datetime] = _utcnow,
                 key_factory: Callable[[int], PrivateKey] = _rsa_key):
        self.now_func = now_func
        self.key_factory = key_factory

    def _subject(self, options: ProxyOptions, serial: int) -> x509.Name:
        if options.proxy_type == ProxyType.LEGACY:
            cn = LEGACY_LIMITED_PROXY_CN if options.limited else LEGACY_PROXY_CN
        else:
            cn = str(serial)
        rdns = list(options.issuer.subject.rdns)
        rdns.append(x509.RelativeDistinguishedName([x509.NameAttribute(NameOID.COMMON_NAME, cn)]))
        return x509.Name(rdns)

    def generate(self, options: ProxyOptions, signing_key: PrivateKey) -> GeneratedProxy:
        issuer = options.issuer
        key = self.key_factory(options.key_size)
        serial = x509.random_serial_number()
        now = options.not_before or self.now_func()
        # Never outlive the issuer, whatever the clock did since the lifetime was computed
        not_after = min(now + timedelta(seconds=options.lifetime), issuer.not_valid_after_utc)

        builder = (
            x509.CertificateBuilder()
            .serial_number(serial)
            .issuer_name(issuer.subject)
            .subject_name(self._subject(options, serial))
            .public_key(key.public_key())
            .not_valid_before(now)
            .not_valid_after(not_after)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
        )

        if options.proxy_type != ProxyType.LEGACY:
            oid = RFC3820_PROXY_CERT_INFO_OID if options.proxy_type == ProxyType.RFC3820 \
                else DRAFT_PROXY_CERT_INFO_OID
            value = encode_proxy_cert_info(
                options.proxy_type, options.policy or ProxyPolicy.INHERIT_ALL, options.path_len_constraint
            )
            builder = builder.add_extension(
                x509.UnrecognizedExtension(x509.ObjectIdentifier(oid), value), critical=True
            )

        if options.attribute_certificates:
            builder = builder.add_extension(
                x509.UnrecognizedExtension(
                    x509.ObjectIdentifier(VOMS_AC_EXTENSION_OID),
                    encode_attribute_certificates(options.attribute_certificates),
                ),
                critical=False,
            )

        certificate = builder.sign(private_key=signing_key, algorithm=_signature_hash(signing_key))
        logger.debug(f"Issued {options.proxy_type.value} proxy {certificate.subject.rfc4514_string()}")
        return GeneratedProxy(certificate=certificate, private_key=key, issuer_chain=tuple(options.issuer_chain))


__all__ = [
    "GeneratedProxy",
    "ProxyGenerator",
    "X509ProxyGenerator",
    "encode_proxy_cert_info",
    "encode_attribute_certificates",
    "RFC3820_PROXY_CERT_INFO_OID",
    "DRAFT_PROXY_CERT_INFO_OID",
    "VOMS_AC_EXTENSION_OID",
]
