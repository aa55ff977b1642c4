"""Dialog state machine: drives one reporter conversation from greeting to a stored incident.

GREET -> COLLECTING_TYPE -> COLLECTING_LOCATION -> COLLECTING_PEOPLE -> CONFIRMING -> COMPLETE

Every method mutates state before its first await, so on a single event loop a turn is atomic
with respect to other events. Geocoding runs in the background and is tagged with the draft
token that was live when it started; results for a retired token are dropped.
"""

import asyncio
import inspect
import itertools
import logging
import uuid
from typing import Callable, Optional

from core.errors import DialogNotStartedError, GeoFailed
from core.models import (
    INCIDENT_TYPES,
    DEFAULT_LOCATION,
    DEFAULT_PEOPLE_COUNT,
    DEFAULT_TYPE,
    Coordinates,
    DialogState,
    Draft,
    Incident,
    Utterance,
)
from core.store import IncidentStore
from extractors.intent_classifier import IntentClassifier
from extractors.slot_extractor import extract_location, extract_people_count, is_affirmative, is_negative
from geo.bridge import GeoBridge, geocode_wait

logger = logging.getLogger("intake_api.dialog")

GREETING = "Emergency assistance. What's happening? You can say medical, breakdown, theft or fire."
TYPE_REPROMPT = "Sorry, I didn't catch what kind of emergency this is. Can you describe it again?"
TYPE_MENU = "Please say one of: " + ", ".join(INCIDENT_TYPES[:-1]) + f" or {INCIDENT_TYPES[-1]}."
LOCATION_PROMPT = "Where are you? A street, highway or nearest exit helps."
LOCATION_REPROMPT = "I didn't get a location. Which road or street are you on?"
PEOPLE_PROMPT = "How many people need help?"
PEOPLE_REPROMPT = "How many people are involved? A number is fine, or say 'just me'."
CONFIRM_REPROMPT = "Please say yes to submit, or no to change the type of emergency."
CORRECTION_PROMPT = "Okay, let's fix that. What kind of emergency is it?"

# Consecutive misses in COLLECTING_TYPE before the prompt shrinks to the menu.
MENU_AFTER_MISSES = 2


def generate_caller_id() -> str:
    return "caller-" + uuid.uuid4().hex[:16]


def _describe_type(type_: Optional[str], sub_service: Optional[str]) -> str:
    if not type_:
        return "unknown"
    return f"{type_} ({sub_service})" if sub_service else type_


def summary_text(draft: Draft) -> str:
    people = draft.people_count or DEFAULT_PEOPLE_COUNT
    noun = "person" if people == 1 else "people"
    return (
        f"Please confirm: {_describe_type(draft.type, draft.sub_service)} at "
        f"{draft.location or DEFAULT_LOCATION}, {people} {noun}. Is that correct?"
    )


class DialogManager:
    """One reporter session. Classifier and store are owned elsewhere and may be shared."""

    def __init__(
        self,
        classifier: IntentClassifier,
        store: IncidentStore,
        *,
        geo: Optional[GeoBridge] = None,
        speak: Optional[Callable] = None,
        display: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[DialogState], None]] = None,
        on_incident: Optional[Callable[[Incident], None]] = None,
        caller_id: Optional[str] = None,
        geocode_wait_seconds: Optional[float] = None,
    ):
        self.classifier = classifier
        self.store = store
        self.geo = geo or GeoBridge()
        self._speak = speak
        self._display = display
        self._on_state_change = on_state_change
        self._on_incident = on_incident
        self.caller_id = caller_id or generate_caller_id()
        self.geocode_wait = geocode_wait_seconds if geocode_wait_seconds is not None else geocode_wait()

        self.state = DialogState.GREET
        self.draft: Optional[Draft] = None
        self.last_incident: Optional[Incident] = None
        self._tokens = itertools.count(1)
        self._type_misses = 0
        self._geocode_task: Optional[asyncio.Task] = None
        # Bumped on every transition and restart; a parked confirmation promotes only if unchanged.
        self._revision = 0
        self._background: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Sinks and state
    # -------------------------------------------------------------------------
    @property
    def draft_token(self) -> Optional[int]:
        return self.draft.token if self.draft is not None else None

    def _set_state(self, state: DialogState) -> None:
        if state is self.state:
            return
        logger.info("[%s] state %s -> %s", self.caller_id, self.state.value, state.value)
        self.state = state
        self._revision += 1
        if self._on_state_change:
            self._on_state_change(state)

    def _notify(self, text: str) -> None:
        if self._display:
            self._display(text)

    async def _say(self, text: str) -> None:
        if self._speak is None:
            self._notify(text)
            return
        result = self._speak(text)
        if inspect.isawaitable(result):
            await result

    @property
    def is_active(self) -> bool:
        """True while a draft is being collected, i.e. turns are accepted."""
        return self.draft is not None and self.state not in (DialogState.GREET, DialogState.COMPLETE)

    def _require_draft(self, operation: str) -> Draft:
        if not self.is_active:
            logger.error("[%s] %s called in state %s; start() must run first", self.caller_id, operation, self.state.value)
            raise DialogNotStartedError(f"{operation} requires an active conversation; call start() first")
        return self.draft

    # -------------------------------------------------------------------------
    # Session control
    # -------------------------------------------------------------------------
    async def start(self) -> None:
        """Begin a new conversation with a fresh draft; resolves once the greeting is delivered."""
        if self.draft is not None:
            logger.info("[%s] restart discards draft token=%s", self.caller_id, self.draft.token)
        self.draft = Draft(token=next(self._tokens), caller_id=self.caller_id)
        self._geocode_task = None
        self._type_misses = 0
        self._revision += 1
        self._set_state(DialogState.COLLECTING_TYPE)
        await self._say(GREETING)

    def reset(self) -> None:
        """Back to GREET; the current draft and its token are discarded."""
        if self.draft is not None:
            logger.info("[%s] reset discards draft token=%s", self.caller_id, self.draft.token)
        self.draft = None
        self._geocode_task = None
        self._type_misses = 0
        self._revision += 1
        self._set_state(DialogState.GREET)

    # -------------------------------------------------------------------------
    # Turns
    # -------------------------------------------------------------------------
    async def on_transcript(self, text: str, is_typed: bool = False) -> None:
        """Process one utterance against the current state."""
        if not text or not text.strip():
            logger.debug("[%s] ignored empty utterance", self.caller_id)
            return
        utterance = Utterance(text=text.strip(), is_typed=is_typed)
        self._require_draft("on_transcript")
        handler = {
            DialogState.COLLECTING_TYPE: self._turn_type,
            DialogState.COLLECTING_LOCATION: self._turn_location,
            DialogState.COLLECTING_PEOPLE: self._turn_people,
            DialogState.CONFIRMING: self._turn_confirm,
        }[self.state]
        await handler(utterance)

    def _echo(self, utterance: Utterance) -> None:
        # Typed input is already on screen; speech gets an echo so the reporter can spot mishearing.
        if not utterance.is_typed:
            self._notify(f'Heard: "{utterance.text}"')

    def _next_missing_state(self) -> DialogState:
        draft = self.draft
        if draft.type is None:
            return DialogState.COLLECTING_TYPE
        if draft.location is None:
            return DialogState.COLLECTING_LOCATION
        if draft.people_count is None:
            return DialogState.COLLECTING_PEOPLE
        return DialogState.CONFIRMING

    async def _advance(self, lead: str = "") -> None:
        state = self._next_missing_state()
        self._set_state(state)
        prompt = {
            DialogState.COLLECTING_TYPE: CORRECTION_PROMPT,
            DialogState.COLLECTING_LOCATION: LOCATION_PROMPT,
            DialogState.COLLECTING_PEOPLE: PEOPLE_PROMPT,
        }.get(state) or summary_text(self.draft)
        await self._say(f"{lead} {prompt}".strip())

    async def _turn_type(self, utterance: Utterance) -> None:
        intent = self.classifier.classify(utterance.text)
        if intent is None:
            self._type_misses += 1
            logger.info("[%s] unclassified misses=%d", self.caller_id, self._type_misses)
            await self._say(TYPE_MENU if self._type_misses >= MENU_AFTER_MISSES else TYPE_REPROMPT)
            return
        self._type_misses = 0
        self.draft.type = intent.type
        self.draft.sub_service = intent.sub_service
        self._echo(utterance)
        await self._advance(f"Got it, {_describe_type(intent.type, intent.sub_service)}.")

    async def _turn_location(self, utterance: Utterance) -> None:
        location = extract_location(utterance.text, requested=True)
        if location is None:
            await self._say(LOCATION_REPROMPT)
            return
        self.draft.location = location
        self._echo(utterance)
        if self.geo.can_geocode:
            self._geocode_task = self._spawn(self._enrich_from_text(location, self.draft.token))
        await self._advance(f"Thanks, {location}.")

    async def _turn_people(self, utterance: Utterance) -> None:
        count = extract_people_count(utterance.text)
        if count is None:
            await self._say(PEOPLE_REPROMPT)
            return
        self.draft.people_count = count
        self._echo(utterance)
        await self._advance()

    async def _turn_confirm(self, utterance: Utterance) -> None:
        if is_negative(utterance.text):
            self.draft.type = None
            self.draft.sub_service = None
            self._type_misses = 0
            await self._advance()
            return
        if not is_affirmative(utterance.text):
            await self._say(CONFIRM_REPROMPT)
            return
        draft = self.draft
        pending = self._geocode_task
        if pending is not None and not pending.done() and self.geocode_wait > 0:
            # Only geo enrichment may land during the wait; any other turn voids this "yes".
            revision = self._revision
            await asyncio.wait({pending}, timeout=self.geocode_wait)
            if self.draft is not draft or self._revision != revision:
                logger.info("[%s] confirmation superseded while waiting for geocode", self.caller_id)
                return
        await self._promote()

    async def quick_type(self, type: str) -> None:
        """Set the type directly (no classification) and jump to COLLECTING_LOCATION."""
        if type not in INCIDENT_TYPES:
            raise ValueError(f"unknown incident type: {type!r}")
        draft = self._require_draft("quick_type")
        draft.type = type
        draft.sub_service = None
        self._type_misses = 0
        self._set_state(DialogState.COLLECTING_LOCATION)
        await self._say(f"Got it, {type}. {LOCATION_PROMPT}")

    async def submit_now(self) -> Incident:
        """Force-complete with defaults for any empty slot. In COMPLETE, returns the existing incident."""
        if self.state is DialogState.COMPLETE and self.last_incident is not None:
            logger.info("[%s] submit_now after completion returns %s", self.caller_id, self.last_incident.incident_id)
            return self.last_incident
        draft = self._require_draft("submit_now")
        if draft.type is None:
            draft.type = DEFAULT_TYPE
        if draft.location is None:
            draft.location = DEFAULT_LOCATION
        if draft.people_count is None:
            draft.people_count = DEFAULT_PEOPLE_COUNT
        return await self._promote()

    async def _promote(self) -> Incident:
        draft = self.draft
        # Retire the token first so late geo results cannot touch the handed-off draft.
        self.draft = None
        self._geocode_task = None
        incident = self.store.create(draft)
        self.last_incident = incident
        self._set_state(DialogState.COMPLETE)
        if self._on_incident:
            self._on_incident(incident)
        await self._say(f"Your report {incident.incident_id} has been logged. Help is being arranged.")
        return incident

    # -------------------------------------------------------------------------
    # Geo enrichment (side channel, never a turn)
    # -------------------------------------------------------------------------
    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _apply_coordinates(self, coords: Coordinates, token: Optional[int], source: str) -> bool:
        draft = self.draft
        if draft is None or (token is not None and draft.token != token):
            logger.warning("[%s] dropped stale %s token=%s live=%s", self.caller_id, source, token, self.draft_token)
            return False
        draft.coordinates = coords
        if draft.location is None:
            draft.location = GeoBridge.label_for(coords)
        logger.info("[%s] %s applied token=%s lat=%s lng=%s", self.caller_id, source, draft.token, coords.lat, coords.lng)
        return True

    def set_location_from_geo(self, coords: Coordinates, token: Optional[int] = None) -> bool:
        """Attach coordinates to the live draft without changing state.

        Pass the token captured when the lookup began; a mismatch means the reporter restarted
        and the result is discarded. Returns True when applied.
        """
        if self.state in (DialogState.GREET, DialogState.COMPLETE):
            logger.warning("[%s] geo location ignored in state %s", self.caller_id, self.state.value)
            return False
        return self._apply_coordinates(coords, token, "device location")

    async def locate_device(self) -> bool:
        """Ask the device locator for a position and merge it into the draft it was requested for."""
        token = self.draft_token
        try:
            coords = await self.geo.locate()
        except GeoFailed as e:
            self._notify(f"Location error: {e}")
            return False
        return self.set_location_from_geo(coords, token=token)

    async def _enrich_from_text(self, location: str, token: int) -> None:
        try:
            coords = await self.geo.geocode(location)
        except GeoFailed as e:
            if self.draft_token == token:
                self._notify(f"Couldn't place \"{location}\" on the map ({e}); continuing without coordinates.")
            return
        self._apply_coordinates(coords, token, "geocode")
