# tests/services/test_text_evaluation.py
"""
Tests for free-text evaluation and how it feeds client evaluation.

Coverage:
- phrase matching on word boundaries, regex rules, invalid regex
- negation window and sentence context
- de-duplication, overall severity and review marker
- built-in rules as the fallback rule set
- evaluate_client status and referral reason with text flags
"""

import logging

import pytest

from intake_desk.models.client import ClientStatus
from intake_desk.models.evaluation_criteria import CriteriaAction
from intake_desk.models.text_evaluation_rule import TextEvaluationCategory, TextEvaluationSeverity
from intake_desk.schemas.evaluation_criteria import EvaluationCriteriaRecord
from intake_desk.schemas.text_evaluation import TextEvaluationRuleRecord
from intake_desk.services.evaluation import evaluate_client
from intake_desk.services.text_evaluation import (
    DEFAULT_NEGATION_WORDS,
    client_free_text,
    default_rules,
    evaluate_client_text,
    evaluate_text,
    extract_context,
    find_pattern_matches,
    is_negated,
    rules_in_effect,
)
from intake_desk.utils.identifiers import new_id, utc_now


def make_rule(**overrides) -> TextEvaluationRuleRecord:
    now = utc_now()
    data = {
        "id": new_id(),
        "name": "Self-harm",
        "category": TextEvaluationCategory.SELF_HARM,
        "severity": TextEvaluationSeverity.HIGH,
        "patterns": ["cutting myself"],
        "negation_words": list(DEFAULT_NEGATION_WORDS),
        "negation_window": 5,
        "created_at": now,
        "updated_at": now,
    }
    data.update(overrides)
    return TextEvaluationRuleRecord(**data)


def urgent_rule(**overrides) -> TextEvaluationRuleRecord:
    data = {
        "name": "Active ideation",
        "category": TextEvaluationCategory.SUICIDAL_IDEATION,
        "severity": TextEvaluationSeverity.URGENT,
        "patterns": ["want to die"],
    }
    data.update(overrides)
    return make_rule(**data)


# ============================================================================
# TEST: Matching
# ============================================================================

class TestPatternMatching:

    def test_phrase_matches_on_word_boundaries(self):
        assert find_pattern_matches("Lately I Want To Die.", "want to die", False) == [(9, 20, "Want To Die")]
        assert find_pattern_matches("I want to diet", "want to die", False) == []
        assert find_pattern_matches("unwant to die", "want to die", False) == []

    def test_regex_pattern(self):
        matches = find_pattern_matches("drinking 6 beers a night", r"drinking \d+ beers", True)

        assert [m[2] for m in matches] == ["drinking 6 beers"]

    def test_invalid_regex_matches_nothing(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert find_pattern_matches("anything", "([", True) == []

        assert "invalid text evaluation regex" in caplog.text

    @pytest.mark.parametrize("text,negated", [
        ("I have never been cutting myself", True),
        ("Denies cutting myself", True),
        ("I don't think about cutting myself", True),
        ("I know I keep cutting myself", False),
        ("No. Not in years, but this week, honestly, I started cutting myself again", False),
    ])
    def test_negation_window(self, text, negated):
        start = text.index("cutting myself")

        assert is_negated(text, start, DEFAULT_NEGATION_WORDS, 5) is negated

    def test_zero_window_disables_negation(self):
        text = "never cutting myself"

        assert is_negated(text, text.index("cutting"), DEFAULT_NEGATION_WORDS, 0) is False
        assert is_negated(text, text.index("cutting"), [], 5) is False

    def test_context_is_the_enclosing_sentence(self):
        text = "I sleep badly. Some days I want to die! Work is fine."
        start = text.index("want")

        assert extract_context(text, start, start + len("want to die")) == "Some days I want to die!"

    def test_context_without_sentence_end(self):
        assert extract_context("want to die", 0, 11) == "want to die"


# ============================================================================
# TEST: Text evaluation
# ============================================================================

class TestEvaluateText:

    def test_repeated_match_is_reported_once(self):
        result = evaluate_text("I want to die. I WANT TO DIE.", [urgent_rule()])

        assert len(result.flags) == 1
        assert result.flags[0].matched_text == "want to die"
        assert result.overall_severity == TextEvaluationSeverity.URGENT
        assert result.method == "pattern"

    def test_negated_match_is_dropped(self):
        result = evaluate_text("I would never want to die", [urgent_rule()])

        assert result.flags == []
        assert result.overall_severity == TextEvaluationSeverity.NONE

    def test_highest_severity_and_review_marker(self):
        rules = [
            make_rule(
                category=TextEvaluationCategory.HOSPITALIZATION,
                severity=TextEvaluationSeverity.MEDIUM,
                patterns=["inpatient"],
            ),
            make_rule(
                category=TextEvaluationCategory.PSYCHOSIS,
                severity=TextEvaluationSeverity.HIGH,
                patterns=["hearing voices"],
                requires_review=True,
            ),
        ]

        result = evaluate_text("Was inpatient in May. Still hearing voices at night.", rules)

        assert [f.category for f in result.flags] == [
            TextEvaluationCategory.HOSPITALIZATION,
            TextEvaluationCategory.PSYCHOSIS,
        ]
        assert result.flags[1].context == "Still hearing voices at night."
        assert result.overall_severity == TextEvaluationSeverity.HIGH
        assert result.needs_review is True

    def test_inactive_rules_are_skipped(self):
        result = evaluate_text("cutting myself", [make_rule(is_active=False)])

        assert result.flags == []

    def test_built_in_rules(self):
        rules = default_rules()

        assert len(rules) == 10
        assert rules[0].id == "default-suicidal_ideation-0"
        assert all(rule.is_active for rule in rules)
        assert evaluate_text("I am going to kill myself", rules).overall_severity == TextEvaluationSeverity.URGENT

    def test_built_in_rules_apply_only_when_nothing_is_stored(self):
        stored = [make_rule(), make_rule(name="off", is_active=False)]

        assert len(rules_in_effect([])) == 10
        assert [rule.name for rule in rules_in_effect(stored)] == ["Self-harm"]

    def test_client_free_text_joins_answers(self, client_factory):
        client = client_factory(presenting_concerns="Anxiety", additional_info="  ")

        assert client_free_text(client) == "Anxiety"
        assert evaluate_client_text(client_factory(), []) is None


# ============================================================================
# TEST: Client evaluation with text flags
# ============================================================================

def urgent_criteria() -> EvaluationCriteriaRecord:
    now = utc_now()
    return EvaluationCriteriaRecord(
        id=new_id(),
        name="Recent attempt",
        field="suicideAttemptRecent",
        operator="equals",
        value="Yes",
        action=CriteriaAction.FLAG_URGENT,
        created_at=now,
        updated_at=now,
    )


class TestEvaluateClientWithText:

    def test_urgent_text_goes_to_pending_referral(self, client_factory):
        client = client_factory(presenting_concerns="Some days I want to die.")
        text_result = evaluate_client_text(client, [urgent_rule()])

        outcome = evaluate_client(client, [], text_result)
        changes = outcome.client_changes()

        assert outcome.status == ClientStatus.PENDING_REFERRAL
        assert outcome.referral_reason == "Text evaluation: suicidal_ideation - want to die"
        assert changes["text_evaluation_result"] == text_result
        assert outcome.notes.splitlines() == [
            "--- Text Evaluation (pattern) ---",
            '[URGENT] suicidal_ideation: "want to die"',
        ]

    def test_urgent_text_reason_wins_over_urgent_criteria(self, client_factory):
        client = client_factory(suicide_attempt_recent="Yes", additional_info="I want to die")

        outcome = evaluate_client(client, [urgent_criteria()], evaluate_client_text(client, [urgent_rule()]))

        assert outcome.status == ClientStatus.PENDING_REFERRAL
        assert outcome.referral_reason.startswith("Text evaluation: suicidal_ideation")

    def test_non_urgent_text_flags_the_evaluation(self, client_factory):
        client = client_factory(presenting_concerns="I keep cutting myself")

        outcome = evaluate_client(client, [], evaluate_client_text(client, [make_rule()]))

        assert outcome.status == ClientStatus.EVALUATION_FLAGGED
        assert outcome.referral_reason == "Text evaluation: self_harm (high)"
        assert outcome.score == 100

    def test_keywords_take_the_reason_over_text_flags(self, client_factory):
        client = client_factory(presenting_concerns="Bipolar, and I keep cutting myself")

        outcome = evaluate_client(client, [], evaluate_client_text(client, [make_rule()]))

        assert outcome.status == ClientStatus.EVALUATION_FLAGGED
        assert outcome.referral_reason == "Keywords: bipolar"

    def test_clean_text_leaves_evaluation_complete(self, client_factory):
        client = client_factory(presenting_concerns="Work stress")
        text_result = evaluate_client_text(client, [make_rule()])

        outcome = evaluate_client(client, [], text_result)

        assert outcome.status == ClientStatus.EVALUATION_COMPLETE
        assert outcome.notes == "No criteria matched"
        assert outcome.client_changes()["text_evaluation_result"].flags == []
