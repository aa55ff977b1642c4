"""Keyword intent classifier with runtime-trainable phrase rules.

Lookup order: custom rules (newest first), then the built-in table in declaration order.
Built-in order is life-safety first: medical, fire, theft, breakdown, other. Within a type,
entries that carry a sub-service come before the generic keywords for that type.
"""

import itertools
import logging
import re
from dataclasses import dataclass
from typing import Optional

from core.models import INCIDENT_TYPES, Intent

logger = logging.getLogger("intake_api.intent_classifier")


def _keyword_regex(phrases) -> re.Pattern:
    """Whole-word match for any phrase; internal whitespace matches any run of spaces."""
    alts = [r"\s+".join(re.escape(w) for w in p.split()) for p in phrases]
    return re.compile(r"(?<!\w)(" + "|".join(alts) + r")(?!\w)", re.I)


# (pattern, type, sub_service)
BUILTIN_INTENTS = [
    (_keyword_regex(["heart attack", "chest pain", "not breathing", "unconscious", "seizure", "overdose"]), "medical", "ambulance"),
    (_keyword_regex(["accident", "crash", "crashed", "collision", "hit and run"]), "medical", "collision response"),
    (_keyword_regex(["medical", "hurt", "bleeding", "injured", "injury", "ambulance", "fainted", "pain", "sick"]), "medical", None),
    (_keyword_regex(["fire", "on fire", "smoke", "smoking", "burning", "flames"]), "fire", None),
    (_keyword_regex(["carjacked", "carjacking", "stole my car", "car stolen"]), "theft", "vehicle theft"),
    (_keyword_regex(["theft", "stolen", "stole", "robbed", "robbery", "break-in", "broke into", "broken into", "mugged"]), "theft", None),
    (_keyword_regex(["flat tire", "flat tyre", "puncture", "blowout", "blown tire"]), "breakdown", "tire change"),
    (_keyword_regex(["out of gas", "out of fuel", "ran out of gas", "empty tank"]), "breakdown", "fuel delivery"),
    (_keyword_regex(["dead battery", "battery", "won't start", "wont start", "jump start"]), "breakdown", "jump start"),
    (_keyword_regex(["locked out", "locked my keys", "keys locked"]), "breakdown", "lockout"),
    (_keyword_regex(["tow", "towing", "ditch"]), "breakdown", "towing"),
    (_keyword_regex(["breakdown", "broke down", "broken down", "stalled", "engine", "overheating", "overheated", "car trouble"]), "breakdown", None),
    (_keyword_regex(["other", "something else"]), "other", None),
]


def normalize_phrase(phrase: str) -> str:
    return " ".join((phrase or "").lower().split())


@dataclass
class CustomIntentRule:
    phrase: str
    type: str
    sub_service: Optional[str]
    version: int
    pattern: re.Pattern

    def to_dict(self):
        return {"phrase": self.phrase, "type": self.type, "sub_service": self.sub_service, "version": self.version}


class IntentClassifier:
    """Maps an utterance to an Intent. Custom rules are owned per instance."""

    def __init__(self):
        self._rules: dict[str, CustomIntentRule] = {}
        self._versions = itertools.count(1)

    def add_custom_intent(self, phrase: str, type: str, sub_service: Optional[str] = None) -> CustomIntentRule:
        """Train phrase -> type. Re-adding a phrase overwrites it and makes it the newest rule."""
        key = normalize_phrase(phrase)
        if not key:
            raise ValueError("phrase is required")
        if type not in INCIDENT_TYPES:
            raise ValueError(f"unknown incident type: {type!r} (expected one of {', '.join(INCIDENT_TYPES)})")
        replaced = key in self._rules
        rule = CustomIntentRule(
            phrase=key,
            type=type,
            sub_service=sub_service or None,
            version=next(self._versions),
            pattern=_keyword_regex([key]),
        )
        self._rules[key] = rule
        logger.info("custom intent %s phrase=%r type=%s version=%d",
                    "replaced" if replaced else "added", key, type, rule.version)
        return rule

    @property
    def custom_rules(self) -> list[CustomIntentRule]:
        return sorted(self._rules.values(), key=lambda r: r.version, reverse=True)

    def classify(self, text: str) -> Optional[Intent]:
        """Return the first matching Intent, or None when nothing matches (unclassified)."""
        clean = (text or "").strip().lower()
        if not clean:
            return None
        for rule in self.custom_rules:
            if rule.pattern.search(clean):
                logger.debug("classified custom phrase=%r type=%s", rule.phrase, rule.type)
                return Intent(type=rule.type, sub_service=rule.sub_service)
        for rx, inc_type, sub_service in BUILTIN_INTENTS:
            if rx.search(clean):
                return Intent(type=inc_type, sub_service=sub_service)
        logger.info("unclassified text_len=%d", len(clean))
        return None
