"""
VOMS attribute acquisition: request types, command parsing, VOMSES lookup
strategies and the per-VO acquisition loop.
"""

from .types import (
    AttributeRequest,
    AttributeCertificate,
    AttributeService,
    AttributeServiceFactory,
    ACValidatorFactory,
)
from .commands import CommandsParser, parse_voms_commands
from .lookup import VomsesLookup, ExplicitVomsesLookup, DefaultVomsesLookup, vomses_lookup_for
from .acquisition import AttributeAcquisitionLoop, order_fqans

__all__ = [
    "AttributeRequest",
    "AttributeCertificate",
    "AttributeService",
    "AttributeServiceFactory",
    "ACValidatorFactory",
    "CommandsParser",
    "parse_voms_commands",
    "VomsesLookup",
    "ExplicitVomsesLookup",
    "DefaultVomsesLookup",
    "vomses_lookup_for",
    "AttributeAcquisitionLoop",
    "order_fqans",
]
