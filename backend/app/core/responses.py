"""Response envelope models.

Success bodies are ``{"data": ...}`` (plus ``"meta"`` for lists); failures
are ``{"error": {"code", "message", "details"}}`` whatever raised them:
APIError, request validation, or the per-IP limiter.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Pagination metadata for the lobby listing.

    Attributes:
        total: Total number of rows across all pages.
        page: Current page number (0-indexed).
        size: Number of rows per page.
    """

    total: int
    page: int
    size: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        """Number of pages needed for ``total`` rows; 0 when empty."""
        if self.total == 0:
            return 0
        return (self.total + self.size - 1) // self.size

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_last_page(self) -> bool:
        """Whether no page follows the current one."""
        return self.page + 1 >= self.total_pages


class DataResponse(BaseModel, Generic[T]):
    """Envelope for a single result.

    Usage:
        @router.post("/auth/verification/verify")
        async def verify(...) -> DataResponse[VerificationResultResponse]:
            result = await orchestrator.process_verification(token, email)
            return DataResponse(data=...)
    """

    data: T


class ListResponse(BaseModel, Generic[T]):
    """Envelope for a page of results."""

    data: list[T]
    meta: PaginationMeta


class MessageData(BaseModel):
    """Acknowledgement for endpoints that return no resource.

    Public endpoints use a fixed text per route, so the body is identical
    whether or not the email belongs to an account.
    """

    message: str


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "TOKEN_EXPIRED").
        message: Human-readable error message.
        details: Optional structured context (field errors, retry window).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Error envelope: ``{"error": {...}}``."""

    error: ErrorDetail

    @classmethod
    def build(
        cls, code: str, message: str, details: list[dict] | None = None
    ) -> dict:
        """Serialized envelope, ready for a JSONResponse body."""
        return cls(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump()
