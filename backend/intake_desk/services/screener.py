"""
Intake screener rendering.

When a client becomes ready to schedule, the intake answers are rendered
into a one-page HTML screener stored on the client for the clinician.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from jinja2 import Environment, select_autoescape

from ..schemas.client import ClientRecord
from ..utils.identifiers import utc_now

logger = logging.getLogger(__name__)

_env = Environment(autoescape=select_autoescape(default_for_string=True))

SCREENER_TEMPLATE = _env.from_string("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Intake Screener - {{ client.full_name }}</title>
</head>
<body style="margin: 0; padding: 24px; font-family: Arial, Helvetica, sans-serif; color: #1A1A1A;">
    <h1 style="margin: 0 0 4px 0; font-size: 22px;">{{ practice_name }} - Intake Screener</h1>
    <p style="margin: 0 0 20px 0; font-size: 12px; color: #666666;">Generated {{ generated_at }}</p>
    {% for title, rows in sections %}
    <h2 style="margin: 20px 0 8px 0; font-size: 16px; border-bottom: 1px solid #DDDDDD;">{{ title }}</h2>
    <table style="width: 100%; border-collapse: collapse; font-size: 14px;">
        {% for label, value in rows %}
        <tr>
            <td style="width: 35%; padding: 4px 8px 4px 0; font-weight: bold; vertical-align: top;">{{ label }}</td>
            <td style="padding: 4px 0; white-space: pre-wrap;">{{ value or "Not provided" }}</td>
        </tr>
        {% endfor %}
    </table>
    {% endfor %}
</body>
</html>
""")


def _sections(client: ClientRecord):
    return [
        ("Client Information", [
            ("Name", client.full_name),
            ("Email", client.email),
            ("Phone", client.phone),
            ("Age", client.age),
        ]),
        ("Payment", [
            ("Payment Type", client.payment_type),
            ("Insurance Provider", client.insurance_provider),
            ("Member ID", client.insurance_member_id),
        ]),
        ("Scheduling", [
            ("Preferred Times", ", ".join(client.preferred_times)),
            ("Requested Clinician", client.requested_clinician),
            ("Assigned Clinician", client.assigned_clinician),
        ]),
        ("Clinical", [
            ("Presenting Concerns", client.presenting_concerns),
            ("Recent Suicide Attempt", client.suicide_attempt_recent),
            ("Psychiatric Hospitalization", client.psychiatric_hospitalization),
            ("Additional Information", client.additional_info),
        ]),
    ]


def render_screener(
    client: ClientRecord,
    practice_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Screener HTML for one client."""
    now = now or utc_now()
    return SCREENER_TEMPLATE.render(
        client=client,
        practice_name=practice_name or "Therapy Practice",
        generated_at=f"{now:%Y-%m-%d %H:%M} UTC",
        sections=_sections(client),
    )


def screener_changes(client: ClientRecord, practice_name: Optional[str] = None) -> Dict[str, Any]:
    """Client changes storing a freshly rendered screener."""
    now = utc_now()
    html = render_screener(client, practice_name, now)
    logger.info(f"Rendered intake screener for client {client.id}")
    return {"screener_html": html, "screener_generated_at": now}
