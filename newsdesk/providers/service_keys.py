"""Encrypted provider credentials with environment fallback."""

from __future__ import annotations

import logging
from typing import Any, Final, Literal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.core.config import settings
from newsdesk.core.encryption import DecryptionError, decrypt_with_metadata, encrypt
from newsdesk.db.models.config import ApiKey

logger = logging.getLogger(__name__)

ServiceName = Literal["gemini", "airtable", "resend"]
SERVICES: Final[tuple[str, ...]] = ("gemini", "airtable", "resend")


def _env_key(service: str) -> str | None:
    if service == "resend":
        return settings.resend_api_key
    if service == "gemini":
        return settings.gemini_api_key
    return None


class ServiceKeyStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_record(self, service: str) -> ApiKey | None:
        result = await self._session.execute(select(ApiKey).where(ApiKey.service == service))
        return result.scalar_one_or_none()

    async def get_key(self, service: str) -> str | None:
        """Return the plaintext key for ``service``.

        A legacy-format ciphertext is re-encrypted in place. When nothing
        usable is stored, the ``<SERVICE>_API_KEY`` environment value is
        returned and persisted as a connected key.
        """
        record = await self.get_record(service)
        if record is not None and record.key:
            try:
                decrypted = decrypt_with_metadata(record.key)
            except DecryptionError:
                logger.warning("Failed to decrypt stored %s key, attempting env fallback", service)
            else:
                if decrypted.needs_rotation:
                    record.key = encrypt(decrypted.plaintext)
                    await self._session.flush()
                    logger.info("Re-encrypted legacy %s key", service)
                return decrypted.plaintext

        fallback = _env_key(service)
        if not fallback:
            return None
        try:
            if record is None:
                self._session.add(
                    ApiKey(service=service, key=encrypt(fallback), status="connected")
                )
            else:
                record.key = encrypt(fallback)
                record.status = "connected"
            await self._session.flush()
        except SQLAlchemyError as exc:
            logger.warning(
                "Failed to persist fallback %s key, using env key in memory: %s", service, exc
            )
        return fallback

    async def save(self, service: str, key: str | None, **config: Any) -> ApiKey:
        """Upsert a service row; ``key`` is encrypted when given, kept otherwise."""
        record = await self.get_record(service)
        if record is None:
            record = ApiKey(service=service, key=encrypt(key) if key else "", status="disconnected")
            self._session.add(record)
        elif key:
            record.key = encrypt(key)
        if key:
            record.status = "connected"
        for field, value in config.items():
            if value is not None:
                setattr(record, field, value)
        await self._session.flush()
        return record

    async def set_status(self, service: str, status: str) -> None:
        record = await self.get_record(service)
        if record is not None:
            record.status = status
            await self._session.flush()
