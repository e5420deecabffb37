"""Parsing of ``vo[:fqan]`` request commands."""

from collections import OrderedDict
from typing import Dict, Iterable, List, Protocol


class CommandsParser(Protocol):
    def __call__(self, commands: Iterable[str]) -> Dict[str, List[str]]:
        ...  # pragma: no cover - interface placeholder


def parse_voms_commands(commands: Iterable[str]) -> Dict[str, List[str]]:
    """Group commands by VO, keeping the order in which VOs first appear.

    ``"atlas"`` requests the default attributes of ``atlas``;
    ``"atlas:/atlas/Role=production"`` additionally asks for that FQAN.
    """
    parsed: Dict[str, List[str]] = OrderedDict()
    for raw in commands:
        command = raw.strip()
        vo_name, _, fqan = command.partition(":")
        vo_name = vo_name.strip()
        if not vo_name:
            raise ValueError(f"Invalid VOMS command '{raw}': missing VO name")
        fqans = parsed.setdefault(vo_name, [])
        fqan = fqan.strip()
        if fqan:
            fqans.append(fqan)
    return parsed


__all__ = ["CommandsParser", "parse_voms_commands"]
