"""Unit tests for job and queue-item models."""

import pytest
from pydantic import ValidationError

from docker_manager.schemas import JoinMeetingPayload, QueueItem, looks_like_join_payload


@pytest.mark.unit
class TestJoinMeetingPayload:
    def test_parses_wire_names(self):
        job = JoinMeetingPayload.model_validate(
            {
                "userId": " u1 ",
                "link": "https://meet.google.com/abc-defg-hij",
                "recordingId": "r1",
                "timestamp": "2025-10-01T10:00:00Z",
                "maxDurationMins": 90,
            }
        )

        assert job.user_id == " u1 "
        assert job.recording_id == "r1"
        assert job.max_duration_mins == 90

    def test_optional_fields_default_to_none(self):
        job = JoinMeetingPayload.model_validate({"userId": "u1", "link": "https://meet.google.com/x"})

        assert job.recording_id is None
        assert job.timestamp is None
        assert job.max_duration_mins is None
        assert job.to_wire() == {"userId": "u1", "link": "https://meet.google.com/x"}

    @pytest.mark.parametrize("field", ["userId", "link"])
    def test_required_fields_must_be_non_empty(self, field):
        data = {"userId": "u1", "link": "https://meet.google.com/x", field: ""}

        with pytest.raises(ValidationError):
            JoinMeetingPayload.model_validate(data)

    @pytest.mark.parametrize("field", ["userId", "link"])
    def test_whitespace_only_is_rejected(self, field):
        data = {"userId": "u1", "link": "https://meet.google.com/x", field: " \t\n"}

        with pytest.raises(ValidationError):
            JoinMeetingPayload.model_validate(data)

    def test_values_are_passed_through_unchanged(self):
        job = JoinMeetingPayload.model_validate({"userId": " u1\t", "link": " https://meet.google.com/x "})

        assert job.user_id == " u1\t"
        assert job.link == " https://meet.google.com/x "
        assert job.to_wire() == {"userId": " u1\t", "link": " https://meet.google.com/x "}

    def test_fractional_duration_is_kept(self):
        job = JoinMeetingPayload.model_validate({"userId": "u1", "link": "https://meet.google.com/x", "maxDurationMins": 30.5})

        assert job.max_duration_mins == 30.5

    @pytest.mark.parametrize("minutes", [0, -1, float("nan"), float("inf")])
    def test_duration_must_be_finite_and_positive(self, minutes):
        data = {"userId": "u1", "link": "https://meet.google.com/x", "maxDurationMins": minutes}

        with pytest.raises(ValidationError):
            JoinMeetingPayload.model_validate(data)


@pytest.mark.unit
class TestQueueItem:
    def test_decodes_json(self):
        assert QueueItem("q", '{"a": 1}').decode() == {"a": 1}

    def test_non_json_is_returned_raw(self):
        assert QueueItem("q", "not json {").decode() == "not json {"

    @pytest.mark.parametrize(
        "value, expected",
        [
            ({"userId": "u1", "link": "l"}, True),
            ({"userId": "", "link": None}, True),
            ({"userId": "u1"}, False),
            ({"foo": "bar"}, False),
            ("userId link", False),
            (None, False),
        ],
    )
    def test_join_shape_detection(self, value, expected):
        assert looks_like_join_payload(value) is expected
