"""
Pattern-based evaluation of a client's free-text answers.

Each active rule is a list of phrases (or regular expressions). A phrase
matches on word boundaries, case-insensitively. A match is dropped when
one of the rule's negation words occurs among the ``negation_window``
words before it, so "I have never wanted to hurt myself" and "I don't
want to die" do not raise flags for the phrases they contain.

The result lists one flag per category and matched text, carries the
highest severity found, and says whether any flag came from a rule that
asks for a human review.
"""

import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from ..models.text_evaluation_rule import TextEvaluationCategory, TextEvaluationSeverity
from ..schemas.client import ClientRecord
from ..schemas.text_evaluation import TextEvaluationFlag, TextEvaluationResult, TextEvaluationRuleRecord
from ..utils.identifiers import utc_now


logger = logging.getLogger(__name__)

SEVERITY_RANK = {severity: rank for rank, severity in enumerate(TextEvaluationSeverity)}

SENTENCE_END = re.compile(r"[.!?]")
# Characters allowed to follow a plain phrase match.
PHRASE_END = r"(?=[\s.,!?;:]|$)"
WORD_PUNCTUATION = ".,!?;:\"()[]"


# =============================================================================
# Default Rules
# =============================================================================

DEFAULT_NEGATION_WORDS = [
    "never", "not", "don't", "dont", "no", "haven't", "havent",
    "wouldn't", "wouldnt", "didn't", "didnt", "wasn't", "wasnt",
    "isn't", "isnt", "aren't", "arent", "won't", "wont",
    "can't", "cant", "without", "denied", "denies",
]


def _rule(name, category, severity, patterns, requires_review, negation=True) -> dict:
    return {
        "name": name,
        "category": category,
        "severity": severity,
        "patterns": patterns,
        "is_regex": False,
        "negation_words": list(DEFAULT_NEGATION_WORDS) if negation else [],
        "negation_window": 5 if negation else 0,
        "requires_review": requires_review,
        "is_active": True,
    }


DEFAULT_RULES: List[dict] = [
    _rule(
        "Active Suicidal Ideation",
        TextEvaluationCategory.SUICIDAL_IDEATION,
        TextEvaluationSeverity.URGENT,
        [
            "want to die", "want to kill myself", "going to kill myself",
            "planning to end my life", "planning to end it", "plan to kill myself",
            "will kill myself", "ready to die", "going to end it", "going to end my life",
        ],
        requires_review=False,
    ),
    _rule(
        "Passive Suicidal Ideation",
        TextEvaluationCategory.SUICIDAL_IDEATION,
        TextEvaluationSeverity.HIGH,
        [
            "wish I was dead", "wish I wasn't alive", "wish i wasnt alive", "better off dead",
            "don't want to be here", "dont want to be here", "don't want to live",
            "dont want to live", "life isn't worth", "life isnt worth", "what's the point",
            "whats the point", "no reason to live", "tired of living",
        ],
        requires_review=True,
    ),
    _rule(
        "Self-Harm",
        TextEvaluationCategory.SELF_HARM,
        TextEvaluationSeverity.HIGH,
        [
            "cutting myself", "hurting myself", "burning myself", "self-harm", "self harm",
            "harming myself", "hitting myself", "scratching myself",
        ],
        requires_review=False,
    ),
    _rule(
        "Current Substance Use",
        TextEvaluationCategory.SUBSTANCE_USE,
        TextEvaluationSeverity.HIGH,
        [
            "using drugs", "drinking every day", "drinking daily", "can't stop drinking",
            "cant stop drinking", "can't stop using", "cant stop using", "addicted to",
            "dependent on", "using heroin", "using meth", "using cocaine", "overdosed",
        ],
        requires_review=False,
    ),
    _rule(
        "Substance Use Mentioned",
        TextEvaluationCategory.SUBSTANCE_USE,
        TextEvaluationSeverity.MEDIUM,
        [
            "struggle with alcohol", "struggle with drugs", "history of addiction",
            "history of substance", "recovering addict", "in recovery", "used to drink",
            "used to use drugs",
        ],
        requires_review=True,
        negation=False,
    ),
    _rule(
        "Psychosis Indicators",
        TextEvaluationCategory.PSYCHOSIS,
        TextEvaluationSeverity.HIGH,
        [
            "hearing voices", "hear voices", "seeing things", "see things that aren't there",
            "people are watching", "being followed", "being monitored", "paranoid",
            "delusions", "hallucinating", "hallucinations",
        ],
        requires_review=True,
    ),
    _rule(
        "Eating Disorder Indicators",
        TextEvaluationCategory.EATING_DISORDER,
        TextEvaluationSeverity.MEDIUM,
        [
            "making myself throw up", "purging", "binge eating", "bingeing",
            "starving myself", "haven't eaten", "havent eaten", "restricting food",
            "anorexia", "bulimia", "afraid to eat",
        ],
        requires_review=True,
    ),
    _rule(
        "Psychiatric Hospitalization",
        TextEvaluationCategory.HOSPITALIZATION,
        TextEvaluationSeverity.MEDIUM,
        [
            "hospitalized", "inpatient", "psychiatric hospital", "psych ward",
            "mental hospital", "involuntary commitment", "5150", "baker act",
        ],
        requires_review=False,
    ),
    _rule(
        "Violence or Safety Concerns",
        TextEvaluationCategory.VIOLENCE,
        TextEvaluationSeverity.HIGH,
        [
            "want to hurt someone", "going to hurt someone", "want to kill someone",
            "thoughts of hurting", "thoughts of killing", "violent thoughts", "homicidal",
        ],
        requires_review=False,
    ),
    _rule(
        "Current Abuse",
        TextEvaluationCategory.ABUSE,
        TextEvaluationSeverity.HIGH,
        [
            "being abused", "abusing me", "hitting me", "hurting me",
            "afraid of my partner", "afraid of my husband", "afraid of my wife",
            "domestic violence", "sexual abuse", "sexually abused",
        ],
        requires_review=True,
    ),
]


def default_rules() -> List[TextEvaluationRuleRecord]:
    """The built-in rules as records, used when none are stored."""
    now = utc_now()
    return [
        TextEvaluationRuleRecord(
            **rule,
            id=f"default-{rule['category'].value}-{index}",
            created_at=now,
            updated_at=now,
        )
        for index, rule in enumerate(DEFAULT_RULES)
    ]


# =============================================================================
# Matching
# =============================================================================

def find_pattern_matches(text: str, pattern: str, is_regex: bool) -> List[Tuple[int, int, str]]:
    """
    Every occurrence of ``pattern`` in ``text`` as (start, end, matched).

    Plain phrases must start at a word boundary and end before whitespace,
    punctuation or the end of the text. An invalid regex matches nothing.
    """
    if is_regex:
        try:
            compiled = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning(f"Ignoring invalid text evaluation regex {pattern!r}: {e}")
            return []
    else:
        compiled = re.compile(r"(?<!\S)" + re.escape(pattern) + PHRASE_END, re.IGNORECASE)
    return [(m.start(), m.end(), m.group(0)) for m in compiled.finditer(text) if m.group(0)]


def is_negated(text: str, start: int, negation_words: Sequence[str], window: int) -> bool:
    """True when a negation word is among the ``window`` words before ``start``."""
    if not negation_words or window <= 0:
        return False
    negations = {word.lower() for word in negation_words}
    preceding = text[:start].lower().split()[-window:]
    return any(word.strip(WORD_PUNCTUATION) in negations for word in preceding)


def extract_context(text: str, start: int, end: int) -> str:
    """The sentence containing text[start:end]."""
    sentence_start = 0
    for index in range(start - 1, -1, -1):
        if text[index] in ".!?":
            sentence_start = index + 1
            break
    found = SENTENCE_END.search(text, end)
    sentence_end = found.end() if found else len(text)
    return text[sentence_start:sentence_end].strip()


def highest_severity(flags: Iterable[TextEvaluationFlag]) -> TextEvaluationSeverity:
    highest = TextEvaluationSeverity.NONE
    for flag in flags:
        if SEVERITY_RANK[flag.severity] > SEVERITY_RANK[highest]:
            highest = flag.severity
    return highest


def most_severe_flag(flags: Sequence[TextEvaluationFlag]) -> Optional[TextEvaluationFlag]:
    """First flag of the highest severity, or None."""
    if not flags:
        return None
    return max(flags, key=lambda flag: SEVERITY_RANK[flag.severity])


def evaluate_text(text: Optional[str], rules: Iterable[TextEvaluationRuleRecord]) -> TextEvaluationResult:
    """
    Run the active rules over ``text``.

    Flags keep rule order, then match order; a repeated category and
    matched text (ignoring case) is reported once.
    """
    text = text or ""
    flags: List[TextEvaluationFlag] = []
    seen = set()
    needs_review = False

    for rule in rules:
        if not rule.is_active:
            continue
        for pattern in rule.patterns:
            for start, end, matched in find_pattern_matches(text, pattern, rule.is_regex):
                if is_negated(text, start, rule.negation_words, rule.negation_window):
                    continue
                key = (rule.category, matched.lower())
                if key in seen:
                    continue
                seen.add(key)
                flags.append(
                    TextEvaluationFlag(
                        category=rule.category,
                        severity=rule.severity,
                        matched_text=matched,
                        context=extract_context(text, start, end),
                        rule_id=rule.id,
                    )
                )
                needs_review = needs_review or rule.requires_review

    return TextEvaluationResult(
        method="pattern",
        flags=flags,
        overall_severity=highest_severity(flags),
        needs_review=needs_review,
        evaluated_at=utc_now(),
    )


def client_free_text(client: ClientRecord) -> str:
    """Presenting concerns and additional information, blank parts skipped."""
    parts = [client.presenting_concerns or "", client.additional_info or ""]
    return "\n\n".join(part for part in parts if part.strip())


def rules_in_effect(stored: Sequence[TextEvaluationRuleRecord]) -> List[TextEvaluationRuleRecord]:
    """Stored active rules; the built-in rules when nothing is stored."""
    if not stored:
        return default_rules()
    return [rule for rule in stored if rule.is_active]


def evaluate_client_text(
    client: ClientRecord,
    stored_rules: Sequence[TextEvaluationRuleRecord],
) -> Optional[TextEvaluationResult]:
    """Text evaluation of one client, or None when there is no free text."""
    text = client_free_text(client)
    if not text.strip():
        return None
    result = evaluate_text(text, rules_in_effect(stored_rules))
    logger.info(
        f"Text evaluation for client {client.id}: {len(result.flags)} flag(s), "
        f"severity={result.overall_severity.value}"
    )
    return result
