"""
Trust-anchor directory chain validator.

Loads every PEM certificate found in a trust-anchor directory and checks a
chain against it: each certificate must be inside its validity window, each
certificate must be signed by the next one, and the top of the chain must
either be a trust anchor or be issued by one.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes

from ..events import STORE_UPDATE, VALIDATION_ERROR, InitListeners
from .types import ValidationResult

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _issued_by(child: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        child.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _name(cert: x509.Certificate) -> str:
    return cert.subject.rfc4514_string()


class TrustAnchorChainValidator:
    """Chain validator backed by a directory of trusted CA certificates."""

    def __init__(self, trust_anchors_dir: str, listeners: Optional[InitListeners] = None,
                 now_func: Callable[[], datetime] = _utcnow):
        self.trust_anchors_dir = trust_anchors_dir
        self.listeners = listeners or InitListeners()
        self.now_func = now_func
        self._anchors: Optional[List[x509.Certificate]] = None

    def anchors(self) -> List[x509.Certificate]:
        if self._anchors is None:
            self._anchors = self._load_anchors()
        return self._anchors

    def _load_anchors(self) -> List[x509.Certificate]:
        anchors: List[x509.Certificate] = []
        if not os.path.isdir(self.trust_anchors_dir):
            logger.warning(f"Trust anchors directory {self.trust_anchors_dir} does not exist")
            self.listeners.notify(STORE_UPDATE, f"Trust anchors directory not found: {self.trust_anchors_dir}",
                                  directory=self.trust_anchors_dir, loaded=0)
            return anchors
        for entry in sorted(os.listdir(self.trust_anchors_dir)):
            path = os.path.join(self.trust_anchors_dir, entry)
            if not os.path.isfile(path):
                continue
            try:
                with open(path, "rb") as fh:
                    anchors.extend(x509.load_pem_x509_certificates(fh.read()))
            except (OSError, ValueError):
                # Not a certificate file (CRLs, namespaces, signing policies)
                continue
        self.listeners.notify(STORE_UPDATE, f"Loaded {len(anchors)} trust anchors from {self.trust_anchors_dir}",
                              directory=self.trust_anchors_dir, loaded=len(anchors))
        return anchors

    def _find_anchor(self, cert: x509.Certificate) -> Optional[x509.Certificate]:
        fingerprint = cert.fingerprint(hashes.SHA256())
        for anchor in self.anchors():
            if anchor.fingerprint(hashes.SHA256()) == fingerprint:
                return anchor
        for anchor in self.anchors():
            if anchor.subject == cert.issuer and _issued_by(cert, anchor):
                return anchor
        return None

    def validate(self, chain: Sequence[x509.Certificate]) -> ValidationResult:
        errors: List[str] = []
        if not chain:
            errors.append("empty certificate chain")
        now = self.now_func()

        for cert in chain:
            if now < cert.not_valid_before_utc:
                errors.append(f"certificate not yet valid: {_name(cert)}")
            elif now > cert.not_valid_after_utc:
                errors.append(f"certificate expired: {_name(cert)}")

        for child, parent in zip(chain, chain[1:]):
            if not _issued_by(child, parent):
                errors.append(f"{_name(child)} is not signed by {_name(parent)}")

        anchor = self._find_anchor(chain[-1]) if chain else None
        if chain and anchor is None:
            errors.append(f"no trust anchor found for {chain[-1].issuer.rfc4514_string()}")
        elif anchor is not None and not (anchor.not_valid_before_utc <= now <= anchor.not_valid_after_utc):
            errors.append(f"trust anchor expired or not yet valid: {_name(anchor)}")

        for error in errors:
            self.listeners.notify(VALIDATION_ERROR, error)

        details = {"subject": _name(chain[0])} if chain else {}
        if anchor is not None:
            details["anchor"] = _name(anchor)
        return ValidationResult(valid=not errors, errors=errors, details=details)


__all__ = ["TrustAnchorChainValidator"]
