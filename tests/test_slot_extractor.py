"""Tests for slot extraction: location phrase, people count, yes/no."""

import pytest

from extractors.slot_extractor import extract_location, extract_people_count, is_affirmative, is_negative


class TestExtractLocation:
    @pytest.mark.parametrize("text,expected", [
        ("on I-95", "I-95"),
        ("near exit 12", "exit 12"),
        ("I'm at 123 Main Street.", "123 Main Street"),
        ("we are currently on the M25 by junction 10", "the M25 by junction 10"),
        ("221B Baker", "221B Baker"),
    ])
    def test_location_like_phrases(self, text, expected):
        assert extract_location(text) == expected

    def test_non_location_rejected_unless_requested(self):
        assert extract_location("outside the big supermarket") is None
        assert extract_location("outside the big supermarket", requested=True) == "outside the big supermarket"

    def test_prefix_stripped_when_requested(self):
        assert extract_location("near the old church", requested=True) == "the old church"

    @pytest.mark.parametrize("text", ["", "   ", "yes", "Okay.", "um", "thank you"])
    def test_filler_returns_none(self, text):
        assert extract_location(text, requested=True) is None

    def test_prefix_only_returns_none(self):
        assert extract_location("I'm at", requested=True) is None


class TestExtractPeopleCount:
    @pytest.mark.parametrize("text,expected", [
        ("2 people", 2),
        ("three of us", 3),
        ("Twelve passengers", 12),
        ("two cars, five people", 2),
        ("just me", 1),
        ("I'm alone", 1),
        ("no one else, just me", 1),
        ("nobody else, I'm alone", 1),
        ("I-95, two of us", 2),
        ("on the M25, 3 people", 3),
    ])
    def test_counts(self, text, expected):
        assert extract_people_count(text) == expected

    @pytest.mark.parametrize("text", ["0", "zero", "-2", "no one", "nobody is hurt", "I don't know", ""])
    def test_invalid_or_missing(self, text):
        assert extract_people_count(text) is None


class TestYesNo:
    @pytest.mark.parametrize("text", ["yes", "Yeah that's right", "correct", "ok submit it"])
    def test_affirmative(self, text):
        assert is_affirmative(text) is True

    @pytest.mark.parametrize("text", ["no", "not correct", "that's wrong", "change it"])
    def test_negative(self, text):
        assert is_negative(text) is True
        assert is_affirmative(text) is False

    def test_neither(self):
        assert is_affirmative("the blue car") is False
        assert is_negative("the blue car") is False
