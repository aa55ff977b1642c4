"""Tests for the intent classifier: built-in keywords, priority order, custom rules."""

import pytest

from extractors.intent_classifier import IntentClassifier


class TestBuiltinKeywords:
    @pytest.mark.parametrize("text", [
        "my friend is bleeding on the highway",
        "someone is hurt",
        "there's been an accident near exit 4",
        "I think he is INJURED",
        "medical",
    ])
    def test_medical_keywords_anywhere(self, classifier, text):
        intent = classifier.classify(text)
        assert intent is not None
        assert intent.type == "medical"

    def test_breakdown_with_sub_service(self, classifier):
        intent = classifier.classify("I've got a flat tire on the M25")
        assert intent.type == "breakdown"
        assert intent.sub_service == "tire change"

    def test_generic_breakdown(self, classifier):
        intent = classifier.classify("my car broke down")
        assert intent.type == "breakdown"
        assert intent.sub_service is None

    @pytest.mark.parametrize("text", ["my bag was stolen", "we got robbed", "there was a break-in"])
    def test_theft(self, classifier, text):
        assert classifier.classify(text).type == "theft"

    def test_fire(self, classifier):
        assert classifier.classify("the engine is on fire").type == "fire"

    def test_tie_resolved_by_declaration_order(self, classifier):
        # medical is declared before fire
        assert classifier.classify("there was an accident and now there's smoke").type == "medical"

    def test_keywords_match_whole_words(self, classifier):
        assert classifier.classify("I'm in town") is None

    def test_case_and_whitespace_insensitive(self, classifier):
        assert classifier.classify("   THEFT  ").type == "theft"

    @pytest.mark.parametrize("text", ["", "   ", "hello there"])
    def test_unclassified(self, classifier, text):
        assert classifier.classify(text) is None


class TestCustomIntents:
    def test_custom_rule_overrides_builtin_phrase(self, classifier):
        assert classifier.classify("flat tire").type == "breakdown"
        classifier.add_custom_intent("flat tire", "other")
        assert classifier.classify("flat tire").type == "other"
        assert classifier.classify("I have a flat tire").type == "other"

    def test_adding_same_phrase_overwrites(self, classifier):
        classifier.add_custom_intent("Smashed Window", "theft")
        classifier.add_custom_intent("smashed   window", "breakdown")
        assert len(classifier.custom_rules) == 1
        assert classifier.custom_rules[0].type == "breakdown"
        assert classifier.classify("my smashed window").type == "breakdown"

    def test_newest_rule_wins_on_overlap(self, classifier):
        classifier.add_custom_intent("red van", "theft")
        classifier.add_custom_intent("van", "breakdown")
        assert classifier.classify("the red van").type == "breakdown"
        classifier.add_custom_intent("red van", "theft")
        assert classifier.classify("the red van").type == "theft"

    def test_custom_rule_with_sub_service(self, classifier):
        classifier.add_custom_intent("snake bite", "medical", sub_service="antivenom")
        intent = classifier.classify("there's a snake bite here")
        assert intent.type == "medical"
        assert intent.sub_service == "antivenom"

    def test_rejects_unknown_type(self, classifier):
        with pytest.raises(ValueError):
            classifier.add_custom_intent("alien", "ufo")

    def test_rejects_empty_phrase(self, classifier):
        with pytest.raises(ValueError):
            classifier.add_custom_intent("   ", "other")

    def test_instances_are_isolated(self, classifier):
        classifier.add_custom_intent("pothole", "breakdown")
        assert IntentClassifier().classify("pothole") is None
