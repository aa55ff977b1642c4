"""Intake models: utterances, intents, the in-progress draft and finalized incidents."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

# Closed set of incident types; order is the order shown in menus.
INCIDENT_TYPES = ("medical", "breakdown", "theft", "fire", "other")

DEFAULT_TYPE = "other"
DEFAULT_LOCATION = "Unknown"
DEFAULT_PEOPLE_COUNT = 1


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class DialogState(str, Enum):
    GREET = "GREET"
    COLLECTING_TYPE = "COLLECTING_TYPE"
    COLLECTING_LOCATION = "COLLECTING_LOCATION"
    COLLECTING_PEOPLE = "COLLECTING_PEOPLE"
    CONFIRMING = "CONFIRMING"
    COMPLETE = "COMPLETE"


class Status(str, Enum):
    """Incident lifecycle, in order: New -> Assigned -> In Progress -> Resolved."""
    NEW = "New"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"

    @classmethod
    def parse(cls, value) -> "Status":
        """Accept a Status, its value ("In Progress") or its name ("in_progress"), case-insensitive."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for status in cls:
            if text in (status.value.lower(), status.name.lower(), status.name.lower().replace("_", " ")):
                return status
        raise ValueError(f"unknown status: {value!r}")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    def to_dict(self):
        return {"lat": round(self.lat, 6), "lng": round(self.lng, 6)}


@dataclass(frozen=True)
class Utterance:
    text: str
    is_typed: bool = False
    received_at: str = field(default_factory=utc_now_iso)


@dataclass(frozen=True)
class Intent:
    type: str
    sub_service: Optional[str] = None


@dataclass
class Draft:
    """Incident under construction; owned by one DialogManager and never shared."""
    token: int
    caller_id: str
    type: Optional[str] = None
    sub_service: Optional[str] = None
    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    people_count: Optional[int] = None

    def is_complete(self) -> bool:
        return self.type is not None and self.people_count is not None

    def to_dict(self):
        return {
            "token": self.token,
            "caller_id": self.caller_id,
            "type": self.type,
            "sub_service": self.sub_service,
            "location": self.location,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "people_count": self.people_count,
        }


@dataclass
class Incident:
    """Finalized record. Only `status` changes after creation (via IncidentStore.update_status)."""
    incident_id: str
    type: str
    people_count: int
    caller_id: str
    location: str = DEFAULT_LOCATION
    sub_service: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    status: Status = Status.NEW
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self):
        return {
            "incident_id": self.incident_id,
            "type": self.type,
            "sub_service": self.sub_service,
            "location": self.location,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "people_count": self.people_count,
            "caller_id": self.caller_id,
            "status": self.status.value,
            "created_at": self.created_at,
        }
