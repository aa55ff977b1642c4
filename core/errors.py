"""Error kinds raised by the intake core.

No-match classification and failed slot extraction are not errors: the dialog re-prompts.
"""


class IntakeError(Exception):
    pass


class DialogNotStartedError(IntakeError):
    """A turn-advancing operation was called without a live draft (call start() first)."""


class IncidentNotFoundError(IntakeError, KeyError):
    def __init__(self, incident_id: str):
        super().__init__(incident_id)
        self.incident_id = incident_id

    def __str__(self):
        return f"incident not found: {self.incident_id}"


class IncompleteDraftError(IntakeError, ValueError):
    """Draft cannot be promoted: type and people_count must be set."""


class GeoFailed(IntakeError):
    """Geocoding or device geolocation failed; reported to the reporter, never fatal."""
