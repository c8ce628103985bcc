"""Tests for response envelope models."""

from app.core.responses import (
    DataResponse,
    ErrorDetail,
    ErrorResponse,
    ListResponse,
    MessageData,
    PaginationMeta,
)


class TestPaginationMeta:
    """Tests for PaginationMeta model (0-based pages)."""

    def test_total_pages_exact_division(self):
        """Total pages should be total / size when evenly divisible."""
        meta = PaginationMeta(total=100, page=0, size=20)
        assert meta.total_pages == 5

    def test_total_pages_rounds_up(self):
        """Total pages should round up when not evenly divisible."""
        meta = PaginationMeta(total=101, page=0, size=20)
        assert meta.total_pages == 6

    def test_total_pages_zero_items(self):
        """Total pages should be 0 when no items."""
        meta = PaginationMeta(total=0, page=0, size=20)
        assert meta.total_pages == 0
        assert meta.is_last_page is True

    def test_is_last_page(self):
        """The last 0-based page index is total_pages - 1."""
        assert PaginationMeta(total=45, page=2, size=20).is_last_page is True
        assert PaginationMeta(total=45, page=1, size=20).is_last_page is False

    def test_serializes_computed_fields(self):
        """Computed fields appear in the dumped envelope."""
        dumped = PaginationMeta(total=5, page=0, size=20).model_dump()
        assert dumped["total_pages"] == 1
        assert dumped["is_last_page"] is True


class TestEnvelopes:
    """Data, list and error envelopes."""

    def test_data_response_serializes_with_data_key(self):
        """DataResponse should serialize with 'data' key."""
        result = DataResponse(data={"id": "123"}).model_dump()
        assert result == {"data": {"id": "123"}}

    def test_list_response_has_data_and_meta(self):
        """ListResponse should carry items plus pagination meta."""
        response = ListResponse(
            data=[{"id": "1"}], meta=PaginationMeta(total=1, page=0, size=20)
        )
        result = response.model_dump()
        assert result["data"] == [{"id": "1"}]
        assert result["meta"]["total"] == 1

    def test_error_response_details_default_to_none(self):
        """ErrorResponse details are optional."""
        result = ErrorResponse(
            error=ErrorDetail(code="NOT_FOUND", message="Missing")
        ).model_dump()
        assert result == {
            "error": {"code": "NOT_FOUND", "message": "Missing", "details": None}
        }

    def test_build_returns_serialized_envelope(self):
        """build() is the dumped envelope used by every error handler."""
        body = ErrorResponse.build(
            "TOO_MANY_REQUESTS", "Slow down", [{"retry_after_seconds": 5}]
        )
        assert body == {
            "error": {
                "code": "TOO_MANY_REQUESTS",
                "message": "Slow down",
                "details": [{"retry_after_seconds": 5}],
            }
        }

    def test_message_data(self):
        """Acknowledgements carry only a message."""
        assert DataResponse(data=MessageData(message="ok")).model_dump() == {
            "data": {"message": "ok"}
        }
