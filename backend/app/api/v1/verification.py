"""Public onboarding endpoints: registration, verification, password recovery.

Security considerations:
- resend and forgot-password always answer 200 so responses do not reveal
  whether an account exists
- every endpoint is rate limited per IP on top of the per-email cooldowns
- verify is retry-safe: a failed finalize leaves the token live
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.api.deps import DbSession, Directory, Dispatcher
from app.core.config import settings
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse, MessageData
from app.services.onboarding_orchestrator import OnboardingOrchestrator
from app.services.password_recovery import PasswordRecoveryService
from app.services.registration_service import RegistrationService

router = APIRouter()

_RESEND_MESSAGE = (
    "If this email is awaiting verification, a new link has been sent."
)
_FORGOT_PASSWORD_MESSAGE = "If an account exists, a reset code has been sent."


# ===================================================================
# Request / response models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9._]+$")
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=128)
    confirm_password: str = Field(min_length=1, max_length=128)


class EmailRequest(BaseModel):
    """Request body carrying only an email."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class VerifyRequest(BaseModel):
    """Request body for POST /auth/verification/verify."""

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=256)
    email: EmailStr


class ForgotPasswordCompleteRequest(BaseModel):
    """Request body for POST /auth/forgot-password/complete."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    code: str = Field(pattern=r"^\s*\d{6}\s*$")
    new_password: str = Field(min_length=1, max_length=128)
    confirm_password: str = Field(min_length=1, max_length=128)


class VerificationResultResponse(BaseModel):
    """Outcome of a successful verification."""

    model_config = ConfigDict(extra="forbid")

    type: str
    group_path: str | None
    user_id: str
    username: str
    resolved_email: str


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit(settings.rate_limit_verification)
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
) -> DataResponse[MessageData]:
    """Stage a self-registration and send its verification link."""
    svc = RegistrationService(db, directory, dispatcher)
    email = await svc.register(
        username=body.username,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        password=body.password,
        confirm_password=body.confirm_password,
    )
    await db.commit()
    return DataResponse(
        data=MessageData(message=f"A verification link has been sent to {email}.")
    )


# ===================================================================
# POST /auth/verification/resend
# ===================================================================


@router.post("/verification/resend")
@limiter.limit(settings.rate_limit_verification)
async def resend_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
) -> DataResponse[MessageData]:
    """Re-send whichever verification link the email is waiting on.

    Answers 200 whether or not anything was sent; only the per-email
    cooldown surfaces (429).
    """
    orchestrator = OnboardingOrchestrator(db, directory, dispatcher)
    await orchestrator.request_new_verification_link(body.email)
    await db.commit()
    return DataResponse(data=MessageData(message=_RESEND_MESSAGE))


# ===================================================================
# POST /auth/verification/verify
# ===================================================================


@router.post("/verification/verify")
@limiter.limit(settings.rate_limit_verification)
async def verify(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: VerifyRequest,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
) -> DataResponse[VerificationResultResponse]:
    """Validate (token, email) and run its finalize step."""
    orchestrator = OnboardingOrchestrator(db, directory, dispatcher)
    result = await orchestrator.process_verification(body.token, body.email)
    await db.commit()
    return DataResponse(
        data=VerificationResultResponse(
            type=result.type.value,
            group_path=result.group_path,
            user_id=result.user_id,
            username=result.username,
            resolved_email=result.resolved_email,
        )
    )


# ===================================================================
# POST /auth/forgot-password
# ===================================================================


@router.post("/forgot-password")
@limiter.limit(settings.rate_limit_verification)
async def forgot_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
) -> DataResponse[MessageData]:
    """Email a password reset code when the account exists."""
    svc = PasswordRecoveryService(db, directory, dispatcher)
    await svc.initiate(body.email)
    await db.commit()
    return DataResponse(data=MessageData(message=_FORGOT_PASSWORD_MESSAGE))


@router.post("/forgot-password/complete")
@limiter.limit(settings.rate_limit_verification)
async def forgot_password_complete(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ForgotPasswordCompleteRequest,
    db: DbSession,
    directory: Directory,
    dispatcher: Dispatcher,
) -> DataResponse[MessageData]:
    """Consume a reset code and set the new password."""
    svc = PasswordRecoveryService(db, directory, dispatcher)
    await svc.complete(
        email=body.email,
        code=body.code,
        new_password=body.new_password,
        confirm_password=body.confirm_password,
    )
    await db.commit()
    return DataResponse(data=MessageData(message="Your password has been reset."))
