"""
Evaluation criteria engine.

Three layers, leaf first:

- ``evaluate``: applies one comparison operator to a field value
- ``CriteriaMatcher``: runs the active criteria in priority order against a
  client and reports every match, or just the first one
- ``evaluate_client``: turns the matches, referral keywords and the
  free-text evaluation into the outcome (status, score, notes) written
  back onto the client
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from ..core.errors import InvalidOperatorError
from ..models.client import ClientStatus
from ..models.evaluation_criteria import CriteriaAction, CriteriaOperator
from ..models.text_evaluation_rule import TextEvaluationSeverity
from ..schemas.client import ClientRecord
from ..schemas.evaluation_criteria import CriteriaFlag, EvaluationCriteriaRecord
from ..schemas.text_evaluation import TextEvaluationFlag, TextEvaluationResult
from .field_access import read_field
from .text_evaluation import most_severe_flag


logger = logging.getLogger(__name__)


# =============================================================================
# Operator Evaluator
# =============================================================================

def _split_tokens(comparison_value: str) -> List[str]:
    return [token.strip() for token in comparison_value.split(",") if token.strip()]


def _exists(value: str, target: str) -> bool:
    return value.strip() != ""


def _equals(value: str, target: str) -> bool:
    return value == target


def _contains(value: str, target: str) -> bool:
    return target.lower() in value.lower()


def _contains_any(value: str, target: str) -> bool:
    lowered = value.lower()
    return any(token.lower() in lowered for token in _split_tokens(target))


def _contains_all(value: str, target: str) -> bool:
    tokens = _split_tokens(target)
    lowered = value.lower()
    return bool(tokens) and all(token.lower() in lowered for token in tokens)


def _in_list(value: str, target: str) -> bool:
    return value in _split_tokens(target)


def _regex(value: str, target: str) -> bool:
    try:
        pattern = re.compile(target, re.IGNORECASE)
    except re.error as e:
        # invalid patterns never match
        logger.warning(f"Ignoring criteria with invalid regex {target!r}: {e}")
        return False
    return pattern.search(value) is not None


def _negate(check: Callable[[str, str], bool]) -> Callable[[str, str], bool]:
    return lambda value, target: not check(value, target)


OPERATORS: Dict[CriteriaOperator, Callable[[str, str], bool]] = {
    CriteriaOperator.EXISTS: _exists,
    CriteriaOperator.NOT_EXISTS: _negate(_exists),
    CriteriaOperator.EQUALS: _equals,
    CriteriaOperator.NOT_EQUALS: _negate(_equals),
    CriteriaOperator.CONTAINS: _contains,
    CriteriaOperator.NOT_CONTAINS: _negate(_contains),
    CriteriaOperator.CONTAINS_ANY: _contains_any,
    CriteriaOperator.CONTAINS_ALL: _contains_all,
    CriteriaOperator.IN_LIST: _in_list,
    CriteriaOperator.NOT_IN_LIST: _negate(_in_list),
    CriteriaOperator.REGEX: _regex,
}


def parse_operator(operator: Union[str, CriteriaOperator]) -> CriteriaOperator:
    """
    Raises:
        InvalidOperatorError: for anything outside CriteriaOperator
    """
    if isinstance(operator, CriteriaOperator):
        return operator
    try:
        return CriteriaOperator(operator)
    except ValueError:
        raise InvalidOperatorError(str(operator)) from None


def evaluate(
    field_value: Optional[str],
    operator: Union[str, CriteriaOperator],
    comparison_value: Optional[str],
) -> bool:
    """
    Apply one comparison operator.

    ``None`` on either side is treated as the empty string. An invalid regex
    evaluates to False; an unknown operator raises InvalidOperatorError.
    """
    check = OPERATORS[parse_operator(operator)]
    return check(field_value or "", comparison_value or "")


# =============================================================================
# Criteria Matcher
# =============================================================================

@dataclass(frozen=True)
class CriteriaMatch:
    criteria: EvaluationCriteriaRecord
    matched: bool
    field_value: str


class CriteriaMatcher:
    """
    Evaluates criteria against a client.

    Inactive criteria are ignored. The rest are sorted by ascending
    ``priority``; ties keep their input order. Every criterion's field is
    checked against the whitelist before anything is evaluated.
    """

    def __init__(self, criteria: Iterable[EvaluationCriteriaRecord]):
        active = [c for c in criteria if c.is_active]
        self.criteria: List[EvaluationCriteriaRecord] = sorted(active, key=lambda c: c.priority)

    def _field_values(self, client: ClientRecord) -> List[str]:
        return [read_field(client, c.field) for c in self.criteria]

    def match(self, client: ClientRecord) -> List[CriteriaMatch]:
        """One entry per active criterion, in evaluation order."""
        values = self._field_values(client)
        return [
            CriteriaMatch(criteria=c, matched=evaluate(value, c.operator, c.value), field_value=value)
            for c, value in zip(self.criteria, values)
        ]

    def matches(self, client: ClientRecord) -> List[CriteriaMatch]:
        return [result for result in self.match(client) if result.matched]

    def first_match(self, client: ClientRecord) -> Optional[EvaluationCriteriaRecord]:
        """First matching criterion in priority order, or None."""
        values = self._field_values(client)
        for c, value in zip(self.criteria, values):
            if evaluate(value, c.operator, c.value):
                return c
        return None


def match(client: ClientRecord, criteria: Sequence[EvaluationCriteriaRecord]) -> List[CriteriaMatch]:
    return CriteriaMatcher(criteria).match(client)


def first_match(
    client: ClientRecord,
    criteria: Sequence[EvaluationCriteriaRecord],
) -> Optional[EvaluationCriteriaRecord]:
    return CriteriaMatcher(criteria).first_match(client)


# =============================================================================
# Client Evaluation
# =============================================================================

# Presenting concerns that always warrant a clinical review.
REFERRAL_KEYWORDS = (
    "suicid",
    "self-harm",
    "eating disorder",
    "anorexia",
    "bulimia",
    "substance abuse",
    "addiction",
    "psychosis",
    "schizophren",
    "bipolar",
    "inpatient",
    "hospitali",
)


def find_referral_keywords(text: Optional[str]) -> List[str]:
    lowered = (text or "").lower()
    return [keyword for keyword in REFERRAL_KEYWORDS if keyword in lowered]


@dataclass
class ClientEvaluation:
    """Outcome of evaluating one client."""

    flags: List[CriteriaFlag] = field(default_factory=list)
    primary: Optional[EvaluationCriteriaRecord] = None
    referral_keywords: List[str] = field(default_factory=list)
    text_result: Optional[TextEvaluationResult] = None
    score: int = 100
    notes: str = ""
    status: ClientStatus = ClientStatus.EVALUATION_COMPLETE
    referral_reason: Optional[str] = None

    @property
    def primary_action(self) -> Optional[CriteriaAction]:
        return self.primary.action if self.primary else None

    @property
    def text_flags(self) -> List[TextEvaluationFlag]:
        return self.text_result.flags if self.text_result else []

    def client_changes(self) -> dict:
        changes = {
            "status": self.status,
            "evaluation_score": self.score,
            "evaluation_notes": self.notes,
        }
        if self.referral_reason:
            changes["referral_reason"] = self.referral_reason
        if self.text_result is not None:
            changes["text_evaluation_result"] = self.text_result
        return changes


def _decide_status(outcome: ClientEvaluation) -> None:
    text_flags = outcome.text_flags
    urgent_text = next((f for f in text_flags if f.severity == TextEvaluationSeverity.URGENT), None)

    if urgent_text is not None:
        outcome.status = ClientStatus.PENDING_REFERRAL
        outcome.referral_reason = f"Text evaluation: {urgent_text.category.value} - {urgent_text.matched_text}"
    elif outcome.primary_action == CriteriaAction.FLAG_URGENT:
        outcome.status = ClientStatus.PENDING_REFERRAL
        outcome.referral_reason = outcome.primary.name
    elif outcome.flags or outcome.referral_keywords or text_flags:
        outcome.status = ClientStatus.EVALUATION_FLAGGED
        if outcome.referral_keywords:
            outcome.referral_reason = f"Keywords: {', '.join(outcome.referral_keywords)}"
        elif text_flags:
            top = most_severe_flag(text_flags)
            outcome.referral_reason = f"Text evaluation: {top.category.value} ({top.severity.value})"


def _build_notes(outcome: ClientEvaluation) -> str:
    lines = [f"[{flag.action.value}] {flag.criteria_name}: {flag.matched_value}" for flag in outcome.flags]
    if outcome.referral_keywords:
        lines.append(f"Referral keywords: {', '.join(outcome.referral_keywords)}")
    if outcome.text_flags:
        lines.append(f"--- Text Evaluation ({outcome.text_result.method}) ---")
        lines.extend(
            f'[{flag.severity.value.upper()}] {flag.category.value}: "{flag.matched_text}"'
            for flag in outcome.text_flags
        )
    return "\n".join(lines) if lines else "No criteria matched"


def evaluate_client(
    client: ClientRecord,
    criteria: Sequence[EvaluationCriteriaRecord],
    text_result: Optional[TextEvaluationResult] = None,
) -> ClientEvaluation:
    """
    Evaluate a client against the configured criteria.

    An urgent text evaluation flag, or ``flag_urgent`` on the first match
    in priority order, sends the client to pending_referral. Any other
    match, a referral keyword in the presenting concerns or a text
    evaluation flag marks the evaluation for review. The score is the
    share of active criteria the client did not trip.
    """
    matcher = CriteriaMatcher(criteria)
    results = matcher.match(client)
    matched = [r for r in results if r.matched]

    flags = [
        CriteriaFlag(
            criteria_id=r.criteria.id,
            criteria_name=r.criteria.name,
            field=r.criteria.field,
            action=r.criteria.action,
            matched_value=r.field_value,
        )
        for r in matched
    ]
    keywords = find_referral_keywords(client.presenting_concerns)

    score = 100
    if results:
        score = round(100 * (len(results) - len(matched)) / len(results))

    outcome = ClientEvaluation(
        flags=flags,
        primary=matched[0].criteria if matched else None,
        referral_keywords=keywords,
        text_result=text_result,
        score=score,
    )
    _decide_status(outcome)
    outcome.notes = _build_notes(outcome)

    logger.info(
        f"Evaluated client {client.id}: {len(flags)} flag(s), {len(keywords)} keyword(s), "
        f"{len(outcome.text_flags)} text flag(s), status={outcome.status.value}"
    )
    return outcome
