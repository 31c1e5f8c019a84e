# tests/services/test_form_sync.py
"""
Tests for Google Form response parsing.

Coverage:
- question headers mapped to client fields, first pattern wins
- form timestamps parsed as UTC
- rows parsed against the header mapping
"""

from datetime import datetime, timedelta, timezone

import pytest

from intake_desk.services.form_sync import (
    header_mapping,
    match_header_to_field,
    parse_form_timestamp,
    parse_responses,
    sync_status,
)


# ============================================================================
# TEST: Header mapping
# ============================================================================

class TestHeaderMapping:

    @pytest.mark.parametrize("header,field", [
        ("Timestamp", "form_timestamp"),
        ("First Name", "first_name"),
        ("  LAST NAME ", "last_name"),
        ("Email Address", "email"),
        ("Mobile", "phone"),
        ("Age", "age"),
        ("Payment Type", "payment_type"),
        ("Preferred Therapist", "requested_clinician"),
        ("What would you like to address in therapy?", "presenting_concerns"),
        ("Have you attempted suicide in the past 6 months?", "suicide_attempt_recent"),
        ("Have you ever been hospitalized for psychiatric reasons?", "psychiatric_hospitalization"),
        ("Is there anything else you'd like to share?", "additional_info"),
        ("Favourite colour", None),
    ])
    def test_match_header_to_field(self, header, field):
        assert match_header_to_field(header) == field

    def test_first_column_wins_for_a_field(self):
        mapping = header_mapping(["Timestamp", "Email", "Confirm e-mail", "Notes"])

        assert mapping == {0: "form_timestamp", 1: "email"}


# ============================================================================
# TEST: Timestamps
# ============================================================================

class TestParseFormTimestamp:

    def test_google_forms_format(self):
        assert parse_form_timestamp("1/15/2025 10:30:45") == datetime(2025, 1, 15, 10, 30, 45, tzinfo=timezone.utc)

    def test_iso_with_offset_is_converted(self):
        parsed = parse_form_timestamp("2025-01-15T12:30:45+02:00")

        assert parsed == datetime(2025, 1, 15, 10, 30, 45, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)

    def test_unparseable(self):
        assert parse_form_timestamp("yesterday") is None


# ============================================================================
# TEST: Rows
# ============================================================================

class TestParseResponses:

    def test_rows_follow_the_header(self):
        rows = [
            ["Timestamp", "First Name", "Last Name", "Email"],
            ["1/15/2025 10:30:45", " Ana ", "Lopez"],
            [],
        ]

        responses = parse_responses(rows)

        assert [r.row_number for r in responses] == [2, 3]
        assert responses[0].values == {"first_name": "Ana", "last_name": "Lopez"}
        assert responses[0].timestamp == datetime(2025, 1, 15, 10, 30, 45, tzinfo=timezone.utc)
        assert responses[1].raw_timestamp == ""
        assert responses[1].timestamp is None

    def test_header_only_tab_has_no_responses(self):
        assert parse_responses([["Timestamp"]]) == []
        assert parse_responses([]) == []

    def test_status_counts_synced_and_pending(self, client_factory):
        rows = [
            ["Timestamp", "Email"],
            ["1/15/2025 10:30:45", "a@example.com"],
            ["1/16/2025 09:00:00", "b@example.com"],
            ["", "c@example.com"],
        ]
        synced = client_factory(form_timestamp=datetime(2025, 1, 15, 10, 30, 45, tzinfo=timezone.utc))

        status = sync_status(rows, [synced, client_factory()])

        assert status.form_responses_count == 3
        assert status.clients_count == 2
        assert status.synced_count == 1
        assert status.pending_sync == 1
