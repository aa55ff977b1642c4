"""Core intake state: models, errors and the incident store (dialog lives in core.dialog)."""

from core.models import Coordinates, DialogState, Draft, Incident, Intent, Status, Utterance, INCIDENT_TYPES
from core.errors import DialogNotStartedError, GeoFailed, IncidentNotFoundError, IncompleteDraftError, IntakeError
from core.store import IncidentStore

__all__ = [
    "Coordinates",
    "DialogState",
    "Draft",
    "Incident",
    "Intent",
    "Status",
    "Utterance",
    "INCIDENT_TYPES",
    "IntakeError",
    "DialogNotStartedError",
    "GeoFailed",
    "IncidentNotFoundError",
    "IncompleteDraftError",
    "IncidentStore",
]
