"""Regex slot extraction: location phrase, people count, yes/no (no external services)."""

import logging
import re
from typing import Optional

logger = logging.getLogger("intake_api.slot_extractor")

FILLER_UTTERANCES = {
    "yes", "yeah", "yep", "no", "nope", "ok", "okay", "sure", "hello", "hi", "hey",
    "um", "uh", "umm", "hmm", "er", "thanks", "thank you", "please", "right", "alright",
}

# Stripped repeatedly from the front, so "I'm currently on ..." -> "...".
LOCATION_PREFIXES = re.compile(
    r"^(i'm|i am|we're|we are|it's|it is|i think|located|currently|right|just|somewhere|"
    r"on|near|at|by|around|in|off)\b[\s,]*",
    re.I,
)

ROAD_TOKEN_REGEX = re.compile(
    r"\b(street|st|road|rd|avenue|ave|highway|hwy|motorway|freeway|expressway|interstate|route|"
    r"lane|ln|drive|dr|boulevard|blvd|way|exit|junction|bridge|tunnel|mile marker|parkway|pkwy|"
    r"turnpike|bypass|roundabout|intersection|corner)\b",
    re.I,
)
# I-95, M25, A1, US-101
ROAD_NUMBER_REGEX = re.compile(r"\b([a-z]{1,2}-?\d{1,4})\b", re.I)
# "221B Baker", "12 Elm": house number followed by a capitalised name
HOUSE_NUMBER_REGEX = re.compile(r"\b\d+[A-Za-z]?\s+[A-Z][a-z]+")

NUM_WORDS = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
    "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
}
NUMBER_REGEX = re.compile(r"(?<![\w-])(-?\d+)|\b(" + "|".join(NUM_WORDS) + r")\b", re.I)
NOBODY_REGEX = re.compile(r"\b(no one|no-one|nobody|none)\b", re.I)
SINGLE_PERSON_REGEX = re.compile(r"\b(just me|only me|me only|alone|myself|on my own|just one|single person)\b", re.I)

NEGATIVE_REGEX = re.compile(r"\b(no|nope|nah|not|wrong|incorrect|change|cancel)\b", re.I)
AFFIRMATIVE_REGEX = re.compile(
    r"\b(yes|yeah|yep|yup|correct|right|confirm|confirmed|sure|ok|okay|affirmative|submit|send it|that's it)\b",
    re.I,
)


def _is_filler(text: str) -> bool:
    return re.sub(r"[^\w\s']", "", text).strip().lower() in FILLER_UTTERANCES


def looks_like_location(text: str) -> bool:
    return bool(ROAD_TOKEN_REGEX.search(text) or ROAD_NUMBER_REGEX.search(text) or HOUSE_NUMBER_REGEX.search(text))


def extract_location(text: str, requested: bool = False) -> Optional[str]:
    """Return the location phrase with filler prefixes removed, or None.

    With requested=True (the dialog just asked for a location) any non-filler remainder is accepted;
    otherwise the remainder must contain a road token, a road number or a house number + street.
    """
    if not text or not text.strip():
        return None
    clean = text.strip()
    if _is_filler(clean):
        return None
    prev = None
    while prev != clean:
        prev = clean
        clean = LOCATION_PREFIXES.sub("", clean, count=1).strip()
    clean = clean.strip(" .,!?;:")
    if not clean or _is_filler(clean):
        return None
    if requested or looks_like_location(clean):
        return clean
    return None


def extract_people_count(text: str) -> Optional[int]:
    """First explicit number (digits or zero..twenty) by position; 'just me'/'alone' -> 1.

    Zero, negatives and a bare 'nobody' are invalid and return None so the dialog re-prompts.
    'No one else' phrases are dropped before counting, so 'no one else, just me' is 1.
    """
    if not text or not text.strip():
        return None
    counted = NOBODY_REGEX.sub(" ", text)
    m = NUMBER_REGEX.search(counted)
    if m:
        value = int(m.group(1)) if m.group(1) is not None else NUM_WORDS[m.group(2).lower()]
        if value <= 0:
            logger.info("people count rejected value=%d", value)
            return None
        return value
    if SINGLE_PERSON_REGEX.search(counted):
        return 1
    if counted != text:
        logger.info("people count rejected: nobody")
    return None


def is_negative(text: str) -> bool:
    return bool(NEGATIVE_REGEX.search(text or ""))


def is_affirmative(text: str) -> bool:
    """Yes-like reply. Negatives win, so 'not correct' is not affirmative."""
    return not is_negative(text) and bool(AFFIRMATIVE_REGEX.search(text or ""))
