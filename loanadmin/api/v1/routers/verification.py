import logging

from fastapi import APIRouter, Depends, Query, Request, status

from loanadmin.api import deps
from loanadmin.core.limiter import limiter
from loanadmin.core.permissions import StaffRole
from loanadmin.core.settings import settings
from loanadmin.schemas.verification import (
    Channel,
    CleanupResult,
    IssueVerificationRequest,
    VerificationIssued,
    VerificationResult,
    VerifyCodeRequest,
    VerifyTokenRequest,
)
from loanadmin.services.access import AccessDecisionEngine
from loanadmin.services.notifications import Notifier
from loanadmin.services.verification import VerificationEngine

router = APIRouter(prefix="/verifications", tags=["verifications"])
logger = logging.getLogger(__name__)


@router.post(
    "",
    response_model=VerificationIssued,
    status_code=status.HTTP_201_CREATED,
    summary="Issue a verification code and token",
)
@limiter.limit(settings.verification_issue_rate_limit)
async def issue_verification(
    request: Request,
    payload: IssueVerificationRequest,
    engine: VerificationEngine = Depends(deps.get_verification_engine),
    notifier: Notifier = Depends(deps.get_notifier),
) -> VerificationIssued:
    record = await engine.issue(payload.subject_id, payload.recipient, payload.channel)
    await notifier.send_verification(record)
    return VerificationIssued.model_validate(record, from_attributes=True)


@router.post("/verify-code", response_model=VerificationResult, summary="Validate a verification code")
@limiter.limit(lambda: settings.verification_check_rate_limit)
async def verify_code(
    request: Request,
    payload: VerifyCodeRequest,
    engine: VerificationEngine = Depends(deps.get_verification_engine),
) -> VerificationResult:
    verified = await engine.validate_code(payload.recipient, payload.channel, payload.code)
    return VerificationResult(verified=verified)


@router.post("/verify-token", response_model=VerificationResult, summary="Validate a verification link token")
@limiter.limit(lambda: settings.verification_check_rate_limit)
async def verify_token(
    request: Request,
    payload: VerifyTokenRequest,
    engine: VerificationEngine = Depends(deps.get_verification_engine),
) -> VerificationResult:
    verified = await engine.validate_token(payload.recipient, payload.channel, payload.token)
    return VerificationResult(verified=verified)


@router.get("/status", response_model=VerificationResult, summary="Whether the recipient's latest record is verified")
async def verification_status(
    recipient: str = Query(..., min_length=1),
    channel: Channel = Query(...),
    engine: VerificationEngine = Depends(deps.get_verification_engine),
) -> VerificationResult:
    return VerificationResult(verified=await engine.is_verified(recipient, channel))


@router.post("/cleanup", response_model=CleanupResult, summary="Delete expired pending verifications")
async def cleanup_verifications(
    _: AccessDecisionEngine = Depends(deps.require_roles(StaffRole.SYSTEM_OWNER)),
    engine: VerificationEngine = Depends(deps.get_verification_engine),
) -> CleanupResult:
    deleted = await engine.cleanup_expired()
    logger.info("Manual verification cleanup", extra={"deleted": deleted})
    return CleanupResult(deleted=deleted)
