"""
VOMSES lookup strategies.

A lookup strategy only decides *where* VOMS server contact information is
searched for; reading those files belongs to the attribute service.
"""

import os
from typing import List, Mapping, Optional, Sequence

from ..config import VOMS_USERCONF

DEFAULT_VOMSES_LOCATIONS = ("/etc/vomses", "/etc/grid-security/vomses")


class VomsesLookup:
    """Base lookup over an explicit list of locations."""

    def __init__(self, locations: Sequence[str]):
        self._locations = list(locations)

    def search_paths(self) -> List[str]:
        return list(self._locations)

    def existing_paths(self) -> List[str]:
        return [p for p in self.search_paths() if os.path.exists(p)]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.search_paths()!r})"


class ExplicitVomsesLookup(VomsesLookup):
    """Locations supplied by the caller."""


class DefaultVomsesLookup(VomsesLookup):
    """``VOMS_USERCONF``, the user's vomses files, then system-wide locations."""

    def __init__(self, home: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ
        home = home or os.path.expanduser("~")
        locations: List[str] = []
        if env.get(VOMS_USERCONF):
            locations.append(env[VOMS_USERCONF])
        locations.append(os.path.join(home, ".voms", "vomses"))
        locations.append(os.path.join(home, ".glite", "vomses"))
        locations.extend(DEFAULT_VOMSES_LOCATIONS)
        super().__init__(locations)


def vomses_lookup_for(locations: Optional[Sequence[str]] = None,
                      environ: Optional[Mapping[str, str]] = None) -> VomsesLookup:
    if locations:
        return ExplicitVomsesLookup(locations)
    return DefaultVomsesLookup(environ=environ)


__all__ = ["VomsesLookup", "ExplicitVomsesLookup", "DefaultVomsesLookup", "vomses_lookup_for"]
