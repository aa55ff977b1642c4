"""Utterance interpretation: keyword intent classification and regex slot extraction."""

from extractors.intent_classifier import IntentClassifier, CustomIntentRule
from extractors.slot_extractor import extract_location, extract_people_count, is_affirmative, is_negative

__all__ = [
    "IntentClassifier",
    "CustomIntentRule",
    "extract_location",
    "extract_people_count",
    "is_affirmative",
    "is_negative",
]
