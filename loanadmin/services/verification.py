"""Email/phone ownership verification.

A verification record carries two secrets for the same attempt: a short
numeric code for manual entry and a long token for link-based flows. Both
share one expiry window and a single ``pending -> verified`` transition.

Negative outcomes (unknown secret, expired, already used) are reported as
``False`` without saying which; store failures raise ``RecordStoreError``.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loanadmin.core.errors import RecordStoreError
from loanadmin.core.logging import get_audit_logger
from loanadmin.core.settings import settings
from loanadmin.schemas.verification import Channel, VerificationRecord, VerificationStatus
from loanadmin.services.record_store import (
    VERIFICATION_RECORDS,
    RecordStore,
    before,
    eq,
    not_before,
    parse_record,
)

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()

CODE_MIN = 100_000
CODE_MAX = 999_999
TOKEN_BYTES = 32


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_verification_code() -> str:
    """Uniform draw over [100000, 999999]; always six digits."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def generate_verification_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def normalize_recipient(recipient: str, channel: Channel | str) -> str:
    cleaned = recipient.strip()
    if Channel(channel) == Channel.EMAIL:
        return cleaned.lower()
    prefix = "+" if cleaned.startswith("+") else ""
    return prefix + "".join(ch for ch in cleaned if ch.isdigit())


def mask_recipient(recipient: str) -> str:
    if "@" in recipient:
        local, _, domain = recipient.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{recipient[-4:]}"


class VerificationEngine:
    def __init__(
        self,
        store: RecordStore,
        *,
        ttl_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
        supersede_pending: Optional[bool] = None,
    ) -> None:
        self.store = store
        self.ttl = timedelta(
            minutes=ttl_minutes if ttl_minutes is not None else settings.verification_ttl_minutes
        )
        self.clock = clock
        self.supersede_pending = (
            supersede_pending if supersede_pending is not None else settings.verification_supersede_pending
        )

    async def _records(self) -> list[VerificationRecord]:
        result = await self.store.get_all(VERIFICATION_RECORDS)
        return [parse_record(VerificationRecord, VERIFICATION_RECORDS, raw) for raw in result.get("items", [])]

    async def _for_recipient(self, recipient: str, channel: Channel) -> list[VerificationRecord]:
        return [r for r in await self._records() if r.recipient == recipient and r.channel == channel]

    async def issue(self, subject_id: str, recipient: str, channel: Channel | str) -> VerificationRecord:
        """Mint and persist a new pending record.

        The returned record holds the plaintext code and token so the caller
        can hand them to a notifier; nothing is sent from here.
        """
        channel = Channel(channel)
        recipient = normalize_recipient(recipient, channel)

        if self.supersede_pending:
            superseded = 0
            for existing in await self._for_recipient(recipient, channel):
                if existing.status != VerificationStatus.PENDING:
                    continue
                if await self.store.delete_if(
                    VERIFICATION_RECORDS,
                    existing.id,
                    [eq("status", VerificationStatus.PENDING.value)],
                ):
                    superseded += 1
            if superseded:
                logger.info("Superseded %s pending verification(s) for %s", superseded, channel.value)

        now = self.clock()
        raw = await self.store.create(
            VERIFICATION_RECORDS,
            {
                "subject_id": subject_id,
                "recipient": recipient,
                "channel": channel.value,
                "code": generate_verification_code(),
                "token": generate_verification_token(),
                "status": VerificationStatus.PENDING.value,
                "expires_at": now + self.ttl,
                "created_at": now,
            },
        )
        record = parse_record(VerificationRecord, VERIFICATION_RECORDS, raw)
        audit_logger.info(
            "verification.issued",
            extra={
                "verification_id": record.id,
                "subject_id": subject_id,
                "channel": channel.value,
                "recipient": mask_recipient(recipient),
            },
        )
        return record

    async def validate_code(self, recipient: str, channel: Channel | str, code: str) -> bool:
        return await self._validate(recipient, channel, "code", code)

    async def validate_token(self, recipient: str, channel: Channel | str, token: str) -> bool:
        return await self._validate(recipient, channel, "token", token)

    async def _validate(self, recipient: str, channel: Channel | str, field: str, secret: str) -> bool:
        channel = Channel(channel)
        recipient = normalize_recipient(recipient, channel)
        matches = [
            r
            for r in await self._for_recipient(recipient, channel)
            if r.status == VerificationStatus.PENDING
            and secrets.compare_digest(getattr(r, field).encode(), secret.encode())
        ]
        if not matches:
            return False

        record = max(matches, key=lambda r: r.created_at)
        if record.is_expired(self.clock()):
            # Left pending; the cleanup sweep reclaims it.
            return False

        verified = await self.store.update_if(
            VERIFICATION_RECORDS,
            record.id,
            # Expiry is read again at write time against the live clock.
            [eq("status", VerificationStatus.PENDING.value), not_before("expires_at", self.clock)],
            {"status": VerificationStatus.VERIFIED.value},
        )
        if verified:
            audit_logger.info(
                "verification.verified",
                extra={"verification_id": record.id, "subject_id": record.subject_id, "via": field},
            )
        return verified

    async def latest(self, recipient: str, channel: Channel | str) -> Optional[VerificationRecord]:
        channel = Channel(channel)
        records = await self._for_recipient(normalize_recipient(recipient, channel), channel)
        if not records:
            return None
        return max(records, key=lambda r: r.created_at)

    async def is_verified(self, recipient: str, channel: Channel | str) -> bool:
        record = await self.latest(recipient, channel)
        return record is not None and record.status == VerificationStatus.VERIFIED

    async def cleanup_expired(self) -> int:
        """Delete pending records whose window has closed; returns how many went."""
        now = self.clock()
        deleted = 0
        for record in await self._records():
            if record.status != VerificationStatus.PENDING or not now > record.expires_at:
                continue
            # Re-checked at delete time in case the record was verified meanwhile.
            if await self.store.delete_if(
                VERIFICATION_RECORDS,
                record.id,
                [eq("status", VerificationStatus.PENDING.value), before("expires_at", now)],
            ):
                deleted += 1
        if deleted:
            audit_logger.info("verification.cleanup", extra={"deleted": deleted})
        return deleted


async def run_cleanup_sweep(engine: VerificationEngine) -> Optional[int]:
    """Run one sweep for background callers; a failed sweep is logged, not raised."""
    try:
        return await engine.cleanup_expired()
    except RecordStoreError:
        logger.exception("Verification cleanup sweep failed")
        return None
