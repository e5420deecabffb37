"""
Chain validation gate.

The gate is consulted when the user asked for credential validation and
whenever VOMS attributes will be requested, since the chain validator is also
needed to talk to VOMS servers. The validator is either injected or built
once per run by a factory and memoized for the rest of the run.
"""

import logging
from typing import Callable, Mapping, Optional

from ..config import InitParams, resolve_trust_anchors_dir
from ..credential import Credential
from ..errors import CredentialValidationError
from ..events import VALIDATION_RESULT, InitListeners
from .trust import TrustAnchorChainValidator
from .types import ChainValidator, ValidationResult

logger = logging.getLogger(__name__)

ChainValidatorFactory = Callable[[str, InitListeners], ChainValidator]


def default_chain_validator_factory(trust_anchors_dir: str, listeners: InitListeners) -> ChainValidator:
    return TrustAnchorChainValidator(trust_anchors_dir, listeners)


class ValidationGate:
    """Builds the chain validator lazily and validates the user credential."""

    def __init__(self, params: InitParams,
                 validator: Optional[ChainValidator] = None,
                 validator_factory: Optional[ChainValidatorFactory] = None,
                 listeners: Optional[InitListeners] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.params = params
        self.listeners = listeners or InitListeners()
        self.environ = environ
        self._factory = validator_factory or default_chain_validator_factory
        self._validator = validator

    @staticmethod
    def required(params: InitParams) -> bool:
        return params.validate_user_credential or params.requests_attributes

    @property
    def trust_anchors_dir(self) -> str:
        return resolve_trust_anchors_dir(self.params.trust_anchors_dir, self.environ)

    @property
    def built(self) -> bool:
        return self._validator is not None

    def validator(self) -> ChainValidator:
        if self._validator is None:
            trust_dir = self.trust_anchors_dir
            logger.debug(f"Building certificate chain validator for {trust_dir}")
            self._validator = self._factory(trust_dir, self.listeners)
        return self._validator

    def check(self, credential: Credential) -> ValidationResult:
        """Validate the credential chain.

        Raises:
            CredentialValidationError: If the chain is not valid or cannot be checked
        """
        try:
            result = self.validator().validate(credential.chain)
        except Exception as e:
            logger.error(f"Cannot validate user credential {credential.subject}: {e}")
            raise CredentialValidationError(f"Error validating user credential: {e}", e) from e
        self.listeners.emit(VALIDATION_RESULT, result)
        if not result.valid:
            logger.error(f"User credential {credential.subject} is not valid: {'; '.join(result.errors)}")
            raise CredentialValidationError("User credential is not valid!")
        return result


__all__ = ["ValidationGate", "ChainValidatorFactory", "default_chain_validator_factory"]
