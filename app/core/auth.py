"""API key verification.

A presented key must match an active row in the credential store exactly.
An unknown or inactive key is a hard 401: presenting a bad key is not the
same as presenting none, so it never falls back to the anonymous quota.
"""

from __future__ import annotations

import logging

from app.adapters.storage.base import AbstractApiKeyRepository
from app.core.errors import AuthenticationAppError, BackendAppError
from app.core.identity import CredentialCandidate, KeyedIdentity
from app.core.logging import hash_secret

logger = logging.getLogger(__name__)


class CredentialVerifier:
    """Upgrades a credential candidate to a keyed identity."""

    def __init__(self, repository: AbstractApiKeyRepository, *, contact: str) -> None:
        self._repository = repository
        self._contact = contact

    async def authenticate(self, candidate: CredentialCandidate) -> KeyedIdentity:
        """Look up ``candidate`` among the active keys.

        Args:
            candidate: Key extracted from the request.

        Returns:
            KeyedIdentity for the matching key.

        Raises:
            AuthenticationAppError: If the key is unknown or inactive (401).
            BackendAppError: If the credential store fails (500).
        """
        key_hash = hash_secret(candidate.value)
        try:
            record = await self._repository.find_active(candidate.value)
        except BackendAppError as exc:
            logger.error(
                "auth.store_error",
                extra={"api_key_hash": key_hash, "key_source": candidate.source},
            )
            raise BackendAppError(
                code="Server error",
                message="API key could not be validated due to a server error.",
            ) from exc

        if record is None:
            logger.warning(
                "auth.invalid_key",
                extra={"api_key_hash": key_hash, "key_source": candidate.source},
            )
            raise AuthenticationAppError(
                code="Invalid or inactive API key",
                message="The provided API key is not valid or has been deactivated.",
                details={"contact": self._contact},
            )

        logger.info(
            "auth.success",
            extra={
                "api_key_hash": key_hash,
                "api_key_id": record.id,
                "key_source": candidate.source,
            },
        )
        return KeyedIdentity(key_id=record.id, description=record.description)
