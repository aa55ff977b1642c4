"""In-memory incident store: id assignment, status lifecycle, dashboard filtering and export."""

import itertools
import logging
from typing import Callable, Optional

from core.errors import IncidentNotFoundError, IncompleteDraftError
from core.models import Draft, Incident, Status, DEFAULT_LOCATION

logger = logging.getLogger("intake_api.store")

IncidentListener = Callable[[Incident], None]


class IncidentStore:
    """Owns incident-id -> Incident. Insertion order is arrival order (oldest first)."""

    def __init__(self, id_prefix: str = "INC-"):
        self._id_prefix = id_prefix
        self._ids = itertools.count(1)
        self._by_id: dict[str, Incident] = {}
        self._order: list[str] = []
        self._listeners: list[IncidentListener] = []

    def add_listener(self, listener: IncidentListener) -> None:
        self._listeners.append(listener)

    def _next_id(self) -> str:
        return f"{self._id_prefix}{next(self._ids):04d}"

    def create(self, draft: Draft) -> Incident:
        """Promote a complete draft to an Incident with status New."""
        if not draft.is_complete():
            raise IncompleteDraftError(
                f"draft {draft.token} missing type or people_count (type={draft.type!r}, people={draft.people_count!r})"
            )
        incident = Incident(
            incident_id=self._next_id(),
            type=draft.type,
            sub_service=draft.sub_service,
            location=draft.location or DEFAULT_LOCATION,
            coordinates=draft.coordinates,
            people_count=draft.people_count,
            caller_id=draft.caller_id,
        )
        self._by_id[incident.incident_id] = incident
        self._order.append(incident.incident_id)
        logger.info("incident created incident_id=%s type=%s people=%d caller_id=%s",
                    incident.incident_id, incident.type, incident.people_count, incident.caller_id)
        for listener in self._listeners:
            listener(incident)
        return incident

    def get(self, incident_id: str) -> Incident:
        try:
            return self._by_id[incident_id]
        except KeyError:
            raise IncidentNotFoundError(incident_id) from None

    def update_status(self, incident_id: str, status) -> Incident:
        target = Status.parse(status)
        incident = self._by_id.get(incident_id)
        if incident is None:
            logger.warning("update_status not_found incident_id=%s target=%s", incident_id, target.value)
            raise IncidentNotFoundError(incident_id)
        if incident.status is not target:
            logger.info("status incident_id=%s %s -> %s", incident_id, incident.status.value, target.value)
            incident.status = target
        return incident

    @property
    def incidents(self) -> tuple[Incident, ...]:
        return tuple(self._by_id[iid] for iid in self._order)

    def __len__(self):
        return len(self._order)

    def filter(
        self,
        type: Optional[str] = None,
        status=None,
        query: Optional[str] = None,
    ) -> list[Incident]:
        """Dashboard view: exact type/status match plus free-text search over the visible fields."""
        target = Status.parse(status) if status else None
        q = (query or "").strip().lower()
        out = []
        for incident in self.incidents:
            if type and incident.type != type:
                continue
            if target is not None and incident.status is not target:
                continue
            if q:
                hay = " ".join([
                    incident.incident_id,
                    incident.location or "",
                    incident.type or "",
                    incident.sub_service or "",
                    incident.caller_id or "",
                    incident.status.value,
                ]).lower()
                if q not in hay:
                    continue
            out.append(incident)
        return out

    def stats(self) -> dict:
        active = sum(1 for i in self.incidents if i.status is not Status.RESOLVED)
        return {"total": len(self), "active": active}

    def export_all(self) -> list[dict]:
        """Snapshot of every incident as plain dicts, in creation order."""
        return [incident.to_dict() for incident in self.incidents]
