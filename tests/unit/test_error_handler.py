"""Unit tests for error rendering."""

import json
from datetime import datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.api.middleware.error_handler import AlreadyClaimedError, InvalidStateError, error_response_for
from src.schemas.common import ErrorResponse


class TestErrorResponse:
    """Tests for the error envelope."""

    def test_lost_claim_carries_open_advertisements(self) -> None:
        open_ads = [{"id": "ad-2", "teacher_name": "Tess"}]
        error = AlreadyClaimedError(advertisement_id="ad-1", open_advertisements=open_ads)

        response = error_response_for(error, request_id="req-1")
        body = json.loads(response.body)

        assert response.status_code == 409
        assert body["error"] == "already_claimed"
        assert body["advertisement_id"] == "ad-1"
        assert body["open_advertisements"] == open_ads
        assert body["request_id"] == "req-1"

    def test_other_errors_omit_claim_fields(self) -> None:
        body = json.loads(error_response_for(InvalidStateError("Session is cancelled")).body)

        assert body["error"] == "invalid_state"
        assert "advertisement_id" not in body
        assert "open_advertisements" not in body

    def test_timestamp_is_utc(self) -> None:
        body = json.loads(error_response_for(InvalidStateError()).body)

        assert datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00")).utcoffset().total_seconds() == 0

    def test_undeclared_fields_are_rejected(self) -> None:
        with pytest.raises(PydanticValidationError):
            ErrorResponse.from_exception("invalid_state", "nope", session_status="cancelled")
