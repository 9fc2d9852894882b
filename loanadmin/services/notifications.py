from __future__ import annotations

import logging
from typing import Protocol

from loanadmin.schemas.verification import VerificationRecord
from loanadmin.services.verification import mask_recipient

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_verification(self, record: VerificationRecord) -> None:
        """Deliver the record's code (and/or a link carrying its token) out of band."""


class LoggingNotifier:
    """Stand-in used until an email/SMS transport is wired; secrets are not logged."""

    async def send_verification(self, record: VerificationRecord) -> None:
        logger.info(
            "Verification %s ready for delivery via %s to %s",
            record.id,
            record.channel.value,
            mask_recipient(record.recipient),
        )
