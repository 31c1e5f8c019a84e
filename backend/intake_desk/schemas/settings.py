"""Runtime settings schemas."""

from typing import Dict, Optional

from pydantic import Field, field_validator

from ..models.setting import OUTREACH_ATTEMPT_COUNT
from .base import CamelModel, CamelRequest, UtcDatetime


MAX_OUTREACH_ATTEMPTS = 10


class SettingRecord(CamelModel):
    key: str
    value: str = ""
    updated_at: Optional[UtcDatetime] = None
    updated_by: Optional[str] = None


class SettingsResponse(CamelModel):
    settings: Dict[str, str] = Field(default_factory=dict)


class SettingsUpdateRequest(CamelRequest):
    """Keys are stored verbatim; an empty string value deletes the key."""

    settings: Dict[str, str]

    @field_validator("settings")
    @classmethod
    def validate_known_keys(cls, v: Dict[str, str]) -> Dict[str, str]:
        for key in v:
            if not key.strip():
                raise ValueError("Setting keys cannot be blank")
        count = v.get(OUTREACH_ATTEMPT_COUNT)
        if count:
            parse_attempt_count(count)
        return v


def parse_attempt_count(raw: str) -> int:
    """Parse the string-encoded ``outreachAttemptCount`` setting."""
    try:
        count = int(raw.strip())
    except ValueError:
        raise ValueError(f"{OUTREACH_ATTEMPT_COUNT} must be an integer, got {raw!r}") from None
    if not 1 <= count <= MAX_OUTREACH_ATTEMPTS:
        raise ValueError(f"{OUTREACH_ATTEMPT_COUNT} must be between 1 and {MAX_OUTREACH_ATTEMPTS}")
    return count
