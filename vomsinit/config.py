"""
Configuration for proxy initialization.

``InitParams`` is the immutable input of a run. Environment variable names and
the built-in grid-security defaults live here too, together with the small
resolvers that apply the "explicit value > environment > default" precedence.
"""

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence, Tuple

# Environment variables consulted when the corresponding parameter is unset
X509_CERT_DIR = "X509_CERT_DIR"
X509_VOMS_DIR = "X509_VOMS_DIR"
X509_USER_PROXY = "X509_USER_PROXY"
X509_USER_CERT = "X509_USER_CERT"
X509_USER_KEY = "X509_USER_KEY"
PKCS12_USER_CERT = "PKCS12_USER_CERT"
VOMS_USERCONF = "VOMS_USERCONF"

DEFAULT_TRUST_ANCHORS_DIR = "/etc/grid-security/certificates"
DEFAULT_VOMS_DIR = "/etc/grid-security/vomsdir"

DEFAULT_PROXY_LIFETIME = 12 * 3600
DEFAULT_AC_LIFETIME = 12 * 3600
DEFAULT_TIMEOUT = 60
DEFAULT_KEY_SIZE = 2048


class ProxyType(Enum):
    """Proxy certificate formats."""
    LEGACY = "legacy"        # Globus 2 style, no ProxyCertInfo
    DRAFT_RFC = "draft_rfc"  # GT3 pre-standard ProxyCertInfo
    RFC3820 = "rfc3820"


class AcquisitionMode(Enum):
    """How per-VO attribute acquisition failures are treated."""
    BEST_EFFORT = "best_effort"  # fail only when every VO came back empty
    FAIL_FAST = "fail_fast"      # fail on the first VO without a certificate


@dataclass(frozen=True)
class InitParams:
    """Immutable input of a proxy initialization run."""
    # Trust
    trust_anchors_dir: Optional[str] = None
    validate_user_credential: bool = False

    # VOMS attributes
    voms_commands: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()
    fqan_order: Tuple[str, ...] = ()
    vomses_locations: Tuple[str, ...] = ()
    ac_lifetime: int = DEFAULT_AC_LIFETIME
    timeout: int = DEFAULT_TIMEOUT
    verify_ac: bool = False
    acquisition_mode: AcquisitionMode = AcquisitionMode.BEST_EFFORT

    # Proxy
    proxy_lifetime: int = DEFAULT_PROXY_LIFETIME
    key_size: int = DEFAULT_KEY_SIZE
    proxy_type: ProxyType = ProxyType.RFC3820
    limited: bool = False
    path_len_constraint: Optional[int] = None
    generated_proxy_file: Optional[str] = None

    # Credential sourcing
    no_regen: bool = False
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    read_password_from_stdin: bool = False

    def __post_init__(self):
        for name in ("voms_commands", "targets", "fqan_order", "vomses_locations"):
            value = getattr(self, name)
            if value is None:
                value = ()
            object.__setattr__(self, name, tuple(value))
        if self.proxy_lifetime < 0:
            raise ValueError("proxy_lifetime must not be negative")
        if self.ac_lifetime < 0:
            raise ValueError("ac_lifetime must not be negative")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def requests_attributes(self) -> bool:
        return bool(self.voms_commands)


def _environ(environ: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def resolve_trust_anchors_dir(explicit: Optional[str] = None,
                              environ: Optional[Mapping[str, str]] = None) -> str:
    """Explicit value, else ``X509_CERT_DIR``, else the built-in default."""
    if explicit:
        return explicit
    return _environ(environ).get(X509_CERT_DIR) or DEFAULT_TRUST_ANCHORS_DIR


def resolve_voms_dir(environ: Optional[Mapping[str, str]] = None) -> str:
    return _environ(environ).get(X509_VOMS_DIR) or DEFAULT_VOMS_DIR


def default_proxy_file_name(uid: Optional[int] = None) -> str:
    if uid is None:
        uid = os.getuid()
    return f"x509up_u{uid}"


def default_proxy_path(environ: Optional[Mapping[str, str]] = None,
                       tmpdir: Optional[str] = None,
                       uid: Optional[int] = None) -> str:
    """Conventional proxy location: ``X509_USER_PROXY`` or ``<tmpdir>/x509up_u<uid>``."""
    env_path = _environ(environ).get(X509_USER_PROXY)
    if env_path:
        return env_path
    return os.path.join(tmpdir or tempfile.gettempdir(), default_proxy_file_name(uid))


def params_from_args(voms: Optional[Sequence[str]] = None, **kwargs) -> InitParams:
    """Build InitParams accepting plain lists and enum values by name."""
    if voms is not None:
        kwargs["voms_commands"] = tuple(voms)
    proxy_type = kwargs.get("proxy_type")
    if isinstance(proxy_type, str):
        kwargs["proxy_type"] = ProxyType(proxy_type.lower())
    mode = kwargs.get("acquisition_mode")
    if isinstance(mode, str):
        kwargs["acquisition_mode"] = AcquisitionMode(mode.lower())
    return InitParams(**kwargs)


__all__ = [
    "InitParams",
    "ProxyType",
    "AcquisitionMode",
    "resolve_trust_anchors_dir",
    "resolve_voms_dir",
    "default_proxy_path",
    "default_proxy_file_name",
    "params_from_args",
    "X509_CERT_DIR",
    "X509_VOMS_DIR",
    "X509_USER_PROXY",
    "X509_USER_CERT",
    "X509_USER_KEY",
    "PKCS12_USER_CERT",
    "VOMS_USERCONF",
    "DEFAULT_TRUST_ANCHORS_DIR",
    "DEFAULT_VOMS_DIR",
]
