"""Tests for core models: Status parsing, Coordinates, Draft, Incident serialization."""

import pytest

from core.models import Coordinates, Draft, Incident, Status, Utterance


class TestStatus:
    def test_lifecycle_order(self):
        assert [s.value for s in Status] == ["New", "Assigned", "In Progress", "Resolved"]

    @pytest.mark.parametrize("raw", ["In Progress", "in progress", "IN_PROGRESS", "in_progress"])
    def test_parse_accepts_value_or_name(self, raw):
        assert Status.parse(raw) is Status.IN_PROGRESS

    def test_parse_passes_status_through(self):
        assert Status.parse(Status.RESOLVED) is Status.RESOLVED

    @pytest.mark.parametrize("raw", ["Closed", "", None])
    def test_parse_rejects_unknown(self, raw):
        with pytest.raises(ValueError):
            Status.parse(raw)


class TestCoordinates:
    def test_to_dict_rounds(self):
        assert Coordinates(51.50741234, -0.12781234).to_dict() == {"lat": 51.507412, "lng": -0.127812}


class TestUtterance:
    def test_defaults(self):
        u = Utterance(text="hello")
        assert u.is_typed is False
        assert u.received_at.endswith("Z")


class TestDraft:
    def test_empty_draft_not_complete(self):
        draft = Draft(token=1, caller_id="c1")
        assert draft.is_complete() is False
        assert draft.to_dict()["coordinates"] is None

    def test_complete_needs_type_and_people_only(self):
        draft = Draft(token=1, caller_id="c1", type="fire", people_count=3)
        assert draft.is_complete() is True


class TestIncident:
    def test_to_dict(self):
        inc = Incident(
            incident_id="INC-0001",
            type="medical",
            people_count=2,
            caller_id="c1",
            location="123 Main Street",
            coordinates=Coordinates(40.7, -74.0),
        )
        d = inc.to_dict()
        assert d["incident_id"] == "INC-0001"
        assert d["status"] == "New"
        assert d["sub_service"] is None
        assert d["coordinates"] == {"lat": 40.7, "lng": -74.0}
        assert d["created_at"].endswith("Z")
