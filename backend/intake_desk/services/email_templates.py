"""
============================================================================
EMAIL TEMPLATE RENDERING
============================================================================

Templates are stored by staff with ``{{variable}}`` placeholders and
rendered with Jinja2 against the variable registry below. Any variable
the caller leaves empty falls back to the registry default, so a
half-filled client record still produces a readable email.

Rendering runs in an immutable sandbox with no globals, and templates
are limited to literal text and bare placeholders: attribute access,
filters, calls and block tags are rejected.
============================================================================
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple

from jinja2 import TemplateSyntaxError, nodes
from jinja2.exceptions import SecurityError
from jinja2.sandbox import ImmutableSandboxedEnvironment

from ..core.errors import ValidationFailed
from ..models.setting import PRACTICE_EMAIL, PRACTICE_NAME
from ..schemas.client import ClientRecord
from ..schemas.email_template import TemplateValidation
from ..utils.identifiers import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Variable Registry
# =============================================================================

@dataclass(frozen=True)
class TemplateVariable:
    key: str
    description: str
    required: bool = False
    fallback: str = ""
    example: str = ""


TEMPLATE_VARIABLES: Tuple[TemplateVariable, ...] = (
    TemplateVariable("clientFirstName", "The client's first name", required=True, example="John"),
    TemplateVariable("clientLastName", "The client's last name", example="Smith"),
    TemplateVariable("clientEmail", "The client's email address", example="john.smith@email.com"),
    TemplateVariable("clientPhone", "The client's phone number", example="(555) 123-4567"),
    TemplateVariable("clientAge", "The client's age", example="35"),
    TemplateVariable("presentingConcerns", "Presenting concerns from intake", example="Anxiety and stress management"),
    TemplateVariable("paymentType", "Insurance, self-pay, ...", example="Insurance"),
    TemplateVariable("insuranceProvider", "Insurance provider name", fallback="your insurance", example="Blue Cross Blue Shield"),
    TemplateVariable("practiceName", "Name of the practice", fallback="Therapy Practice", example="Sunrise Counseling Center"),
    TemplateVariable("practiceEmail", "Main contact email of the practice", example="intake@sunrise-counseling.com"),
    TemplateVariable("currentDate", "Today's date", example="January 15, 2026"),
    TemplateVariable("currentDay", "Today's day of the week", example="Wednesday"),
    TemplateVariable("appointmentDate", "Scheduled appointment date", fallback="TBD", example="January 20, 2026"),
    TemplateVariable("appointmentTime", "Scheduled appointment time", fallback="TBD", example="2:30 PM"),
    TemplateVariable("customMessage", "Free text added by the sender", example="Looking forward to meeting you!"),
)

VARIABLES_BY_KEY: Dict[str, TemplateVariable] = {v.key: v for v in TEMPLATE_VARIABLES}
REQUIRED_VARIABLES: List[str] = [v.key for v in TEMPLATE_VARIABLES if v.required]

# Plain-text substitution, sandboxed and without globals: templates only
# ever reference registry variables.
_env = ImmutableSandboxedEnvironment(autoescape=False, keep_trailing_newline=True)
_env.globals.clear()

# Literal text and bare {{variable}} output are the whole template language.
PLACEHOLDER_NODES = (nodes.Output, nodes.TemplateData, nodes.Name)


# =============================================================================
# Variable Builders
# =============================================================================

def _format_date(when: datetime) -> str:
    return f"{when:%B} {when.day}, {when.year}"


def _format_time(when: datetime) -> str:
    return f"{when.hour % 12 or 12}:{when:%M} {when:%p}"


def build_variables(
    client: ClientRecord,
    practice_settings: Optional[Mapping[str, str]] = None,
    custom_message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, str]:
    """
    Template variables for one client.

    Args:
        client: the recipient
        practice_settings: runtime settings (practiceName, practiceEmail)
        custom_message: optional sender text
        now: clock override for the date variables
    """
    practice_settings = practice_settings or {}
    now = now or utc_now()
    variables = {
        "clientFirstName": client.first_name,
        "clientLastName": client.last_name,
        "clientEmail": client.email,
        "clientPhone": client.phone,
        "clientAge": client.age,
        "presentingConcerns": client.presenting_concerns,
        "paymentType": client.payment_type,
        "insuranceProvider": client.insurance_provider,
        "practiceName": practice_settings.get(PRACTICE_NAME),
        "practiceEmail": practice_settings.get(PRACTICE_EMAIL),
        "currentDate": _format_date(now),
        "currentDay": f"{now:%A}",
        "customMessage": custom_message,
    }
    if client.scheduled_date:
        variables["appointmentDate"] = _format_date(client.scheduled_date)
        variables["appointmentTime"] = _format_time(client.scheduled_date)
    return {key: value for key, value in variables.items() if value}


def build_sample_variables(now: Optional[datetime] = None) -> Dict[str, str]:
    """Registry example values, for previews without a client."""
    now = now or utc_now()
    sample = {v.key: v.example for v in TEMPLATE_VARIABLES}
    sample["currentDate"] = _format_date(now)
    sample["currentDay"] = f"{now:%A}"
    return sample


# =============================================================================
# Rendering & Validation
# =============================================================================

def resolve_variables(variables: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """Registry defaults overlaid with every non-empty supplied value."""
    resolved = {v.key: v.fallback for v in TEMPLATE_VARIABLES}
    for key, value in variables.items():
        if value:
            resolved[key] = value
    return resolved


def unsupported_expressions(template_ast: nodes.Template) -> List[int]:
    """Line numbers holding anything other than text or a bare variable."""
    return sorted({
        node.lineno
        for node in template_ast.find_all(nodes.Node)
        if not isinstance(node, PLACEHOLDER_NODES)
    })


def _compile(source: str) -> nodes.Template:
    template_ast = _env.parse(source)
    lines = unsupported_expressions(template_ast)
    if lines:
        raise ValidationFailed(
            f"Line {lines[0]}: only {{{{variable}}}} placeholders are allowed", field="body"
        )
    return template_ast


def render_text(source: str, variables: Mapping[str, Optional[str]]) -> str:
    """
    Render one template string.

    Raises:
        TemplateSyntaxError: if the source does not parse
        ValidationFailed: if it uses anything beyond plain placeholders
    """
    template = _env.from_string(_compile(source))
    try:
        return template.render(**resolve_variables(variables))
    except SecurityError as e:
        logger.warning(f"Template rendering blocked by sandbox: {e}")
        raise ValidationFailed("Template uses a disallowed expression", field="body") from e


def render_template(subject: str, body: str, variables: Mapping[str, Optional[str]]) -> Tuple[str, str]:
    return render_text(subject, variables), render_text(body, variables)


def placeholders_in(source: str) -> List[str]:
    """Variable names a template references, sorted."""
    return sorted({node.name for node in _env.parse(source).find_all(nodes.Name)})


def validate_template(subject: str, body: str) -> TemplateValidation:
    """
    Check placeholder usage across subject and body.

    Invalid when a required variable is missing, an unknown variable is
    referenced, an expression other than a bare variable is used or the
    template does not parse.
    """
    used = set()
    unsupported = []
    for part, source in (("subject", subject), ("body", body)):
        try:
            template_ast = _env.parse(source)
        except TemplateSyntaxError as e:
            logger.info(f"Template failed to parse at line {e.lineno}: {e.message}")
            return TemplateValidation(is_valid=False, syntax_error=f"Line {e.lineno}: {e.message}")
        used.update(node.name for node in template_ast.find_all(nodes.Name))
        unsupported.extend(
            f"{part} line {lineno}: only {{{{variable}}}} placeholders are allowed"
            for lineno in unsupported_expressions(template_ast)
        )

    missing = [key for key in REQUIRED_VARIABLES if key not in used]
    unrecognized = sorted(key for key in used if key not in VARIABLES_BY_KEY)
    return TemplateValidation(
        is_valid=not missing and not unrecognized and not unsupported,
        missing_required=missing,
        unrecognized=unrecognized,
        unsupported=unsupported,
        used=sorted(used),
    )
