from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, model_validator

_email_adapter = TypeAdapter(EmailStr)


class Channel(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"


class VerificationRecord(BaseModel):
    """A stored verification attempt, including its plaintext secrets."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    subject_id: str
    recipient: str
    channel: Channel
    code: str = Field(pattern=r"^\d{6}$")
    token: str = Field(min_length=64)
    status: VerificationStatus
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class IssueVerificationRequest(BaseModel):
    subject_id: str = Field(min_length=1, max_length=64)
    recipient: str = Field(min_length=3, max_length=320)
    channel: Channel

    @model_validator(mode="after")
    def _check_recipient(self) -> "IssueVerificationRequest":
        if self.channel == Channel.EMAIL:
            try:
                _email_adapter.validate_python(self.recipient)
            except ValidationError:
                raise ValueError("recipient must be an email address") from None
        elif not self.recipient.strip().lstrip("+").replace(" ", "").replace("-", "").isdigit():
            raise ValueError("recipient must be a phone number")
        return self


class VerifyCodeRequest(BaseModel):
    recipient: str
    channel: Channel
    code: str = Field(min_length=1, max_length=16)


class VerifyTokenRequest(BaseModel):
    recipient: str
    channel: Channel
    token: str = Field(min_length=1, max_length=256)


class VerificationIssued(BaseModel):
    """Public view of an issued record; never carries the code or token."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient: str
    channel: Channel
    status: VerificationStatus
    expires_at: datetime


class VerificationResult(BaseModel):
    verified: bool


class CleanupResult(BaseModel):
    deleted: int
