"""
Validation package: chain validation gate and the trust-anchor validator.
"""

from .types import ValidationResult, ChainValidator, ACValidator
from .trust import TrustAnchorChainValidator
from .gate import ValidationGate, ChainValidatorFactory, default_chain_validator_factory

__all__ = [
    "ValidationResult",
    "ChainValidator",
    "ACValidator",
    "TrustAnchorChainValidator",
    "ValidationGate",
    "ChainValidatorFactory",
    "default_chain_validator_factory",
]
