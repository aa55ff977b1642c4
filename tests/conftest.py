"""Pytest fixtures for intake tests."""

import pytest

from core.dialog import DialogManager
from core.models import Draft
from core.store import IncidentStore
from extractors.intent_classifier import IntentClassifier
from geo.bridge import GeoBridge


class RecordingSink:
    """Collects everything the dialog says, shows and emits."""

    def __init__(self):
        self.spoken = []
        self.notices = []
        self.states = []
        self.incidents = []

    async def speak(self, text):
        self.spoken.append(text)

    def display(self, text):
        self.notices.append(text)


@pytest.fixture
def store():
    return IncidentStore()


@pytest.fixture
def classifier():
    return IntentClassifier()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_manager(classifier, store, sink):
    """Factory: DialogManager wired to the shared store/classifier and the recording sink."""
    def _make(geo=None, geocode_wait_seconds=0.0, caller_id="caller-test"):
        return DialogManager(
            classifier,
            store,
            geo=geo or GeoBridge(timeout=1.0),
            speak=sink.speak,
            display=sink.display,
            on_state_change=sink.states.append,
            on_incident=sink.incidents.append,
            caller_id=caller_id,
            geocode_wait_seconds=geocode_wait_seconds,
        )
    return _make


@pytest.fixture
def complete_draft():
    """Draft with every slot filled."""
    return Draft(
        token=1,
        caller_id="caller-abc",
        type="breakdown",
        sub_service="tire change",
        location="I-95 exit 4",
        people_count=2,
    )
