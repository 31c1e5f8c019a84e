"""
Field accessor for criteria evaluation.

Criteria name client fields by their wire (camelCase) identifier. Only the
fields in ``EVALUABLE_FIELDS`` can be read; each maps to an explicit getter
so no attribute is ever looked up by an arbitrary name.
"""

from typing import TYPE_CHECKING, Callable, Dict, Optional

from ..core.errors import ValidationFailed

if TYPE_CHECKING:
    from ..schemas.client import ClientRecord


FieldGetter = Callable[["ClientRecord"], Optional[str]]


EVALUABLE_FIELDS: Dict[str, FieldGetter] = {
    "firstName": lambda client: client.first_name,
    "lastName": lambda client: client.last_name,
    "email": lambda client: client.email,
    "phone": lambda client: client.phone,
    "age": lambda client: client.age,
    "paymentType": lambda client: client.payment_type,
    "insuranceProvider": lambda client: client.insurance_provider,
    "requestedClinician": lambda client: client.requested_clinician,
    "presentingConcerns": lambda client: client.presenting_concerns,
    "suicideAttemptRecent": lambda client: client.suicide_attempt_recent,
    "psychiatricHospitalization": lambda client: client.psychiatric_hospitalization,
    "additionalInfo": lambda client: client.additional_info,
}


def is_evaluable_field(field: str) -> bool:
    return field in EVALUABLE_FIELDS


def read_field(client: "ClientRecord", field: str) -> str:
    """
    Read a whitelisted field off a client.

    Missing values come back as the empty string.

    Raises:
        ValidationFailed: if ``field`` is not in the whitelist
    """
    getter = EVALUABLE_FIELDS.get(field)
    if getter is None:
        raise ValidationFailed(f"Field '{field}' cannot be used in evaluation criteria", field="field")
    value = getter(client)
    return "" if value is None else str(value)
