# tests/repositories/test_repositories.py
"""
Repository contract tests, run once per storage backend.

Every test takes the parametrized ``repos`` fixture, so the relational and
the spreadsheet implementations are held to the same behaviour.
"""

from datetime import date, timedelta

import pytest

from intake_desk.core.errors import ValidationFailed
from intake_desk.models.audit_log import AuditAction, AuditEntityType
from intake_desk.models.client import ClientStatus, ClosedFromWorkflow
from intake_desk.models.email_template import EmailTemplateType
from intake_desk.models.evaluation_criteria import CriteriaAction
from intake_desk.models.outreach_attempt import OutreachAttemptStatus, OutreachAttemptType
from intake_desk.schemas.audit import AuditLogCreate
from intake_desk.schemas.referral_clinic import CustomFieldDefinition
from intake_desk.utils.identifiers import utc_now


def client_data(**overrides):
    data = {
        "first_name": "Ana",
        "last_name": "Lopez",
        "email": "ana@example.com",
        "preferred_times": ["Mon AM", "Wed PM"],
    }
    data.update(overrides)
    return data


def criteria_data(**overrides):
    data = {
        "name": "Self-pay",
        "field": "paymentType",
        "operator": "equals",
        "value": "Self-Pay",
        "action": CriteriaAction.FLAG,
        "priority": 0,
    }
    data.update(overrides)
    return data


def template_data(**overrides):
    data = {
        "name": "Welcome",
        "type": EmailTemplateType.INITIAL_OUTREACH,
        "subject": "Hello {{clientFirstName}}",
        "body": "Hi {{clientFirstName}}",
    }
    data.update(overrides)
    return data


# ============================================================================
# TEST: Clients
# ============================================================================

class TestClientRepository:

    def test_create_assigns_id_and_timestamps(self, repos):
        client = repos.clients.create(client_data())

        assert client.id
        assert client.created_at == client.updated_at
        assert client.status == ClientStatus.NEW

        stored = repos.clients.get_by_id(client.id)
        assert stored.email == "ana@example.com"
        assert stored.preferred_times == ["Mon AM", "Wed PM"]

    def test_get_by_id_unknown_returns_none(self, repos):
        assert repos.clients.get_by_id("missing") is None

    def test_update_merges_only_supplied_fields(self, repos):
        client = repos.clients.create(client_data(phone="555-0100"))

        updated = repos.clients.update(client.id, {"status": ClientStatus.PENDING_EVALUATION})

        assert updated.status == ClientStatus.PENDING_EVALUATION
        assert updated.phone == "555-0100"
        assert updated.created_at == client.created_at
        assert updated.updated_at >= client.updated_at
        assert repos.clients.get_by_id(client.id).status == ClientStatus.PENDING_EVALUATION

    def test_blank_optional_text_reads_back_the_same_on_both_backends(self, repos):
        client = repos.clients.create(client_data(phone="", referral_reason="Minor"))

        updated = repos.clients.update(client.id, {"referral_reason": ""})
        stored = repos.clients.get_by_id(client.id)

        assert client.phone is None
        assert updated.referral_reason is None
        assert stored.referral_reason is None
        assert stored.phone is None

    def test_blank_required_text_is_kept(self, repos):
        client = repos.clients.create(client_data(last_name=""))

        assert repos.clients.get_by_id(client.id).last_name == ""

    def test_update_unknown_returns_none(self, repos):
        repos.clients.create(client_data())
        assert repos.clients.update("missing", {"phone": "1"}) is None

    def test_update_rejects_immutable_fields(self, repos):
        client = repos.clients.create(client_data())
        with pytest.raises(ValidationFailed):
            repos.clients.update(client.id, {"id": "other"})

    def test_get_all_newest_first(self, repos):
        first = repos.clients.create(client_data(first_name="First"))
        second = repos.clients.create(client_data(first_name="Second"))

        assert [c.id for c in repos.clients.get_all()] == [second.id, first.id]

    def test_get_by_status(self, repos):
        waiting = repos.clients.create(client_data())
        repos.clients.create(client_data())
        repos.clients.update(waiting.id, {"status": ClientStatus.PENDING_OUTREACH})

        result = repos.clients.get_by_status(ClientStatus.PENDING_OUTREACH)

        assert [c.id for c in result] == [waiting.id]

    def test_follow_ups_due_includes_end_of_today(self, repos):
        today = date(2026, 3, 10)
        due_today = repos.clients.create(client_data())
        overdue = repos.clients.create(client_data())
        future = repos.clients.create(client_data())
        wrong_stage = repos.clients.create(client_data())
        noon = utc_now().replace(year=2026, month=3, day=10, hour=12)

        repos.clients.update(due_today.id, {"status": ClientStatus.FOLLOW_UP_1, "next_follow_up_due": noon})
        repos.clients.update(
            overdue.id,
            {"status": ClientStatus.OUTREACH_SENT, "next_follow_up_due": noon - timedelta(days=2)},
        )
        repos.clients.update(
            future.id,
            {"status": ClientStatus.FOLLOW_UP_2, "next_follow_up_due": noon + timedelta(days=1)},
        )
        repos.clients.update(wrong_stage.id, {"status": ClientStatus.REPLIED, "next_follow_up_due": noon})

        result = repos.clients.get_follow_ups_due(today)

        assert [c.id for c in result] == [overdue.id, due_today.id]

    def test_get_closed_filters_by_workflow_most_recent_first(self, repos):
        now = utc_now()
        older = repos.clients.create(client_data())
        newer = repos.clients.create(client_data())
        other = repos.clients.create(client_data())
        repos.clients.create(client_data())

        repos.clients.update(older.id, {
            "status": ClientStatus.CLOSED_NO_CONTACT,
            "closed_date": now - timedelta(days=3),
            "closed_from_workflow": ClosedFromWorkflow.OUTREACH,
        })
        repos.clients.update(newer.id, {
            "status": ClientStatus.DUPLICATE,
            "closed_date": now,
            "closed_from_workflow": ClosedFromWorkflow.OUTREACH,
        })
        repos.clients.update(other.id, {
            "status": ClientStatus.CLOSED_OTHER,
            "closed_date": now - timedelta(days=1),
            "closed_from_workflow": ClosedFromWorkflow.EVALUATION,
        })

        assert [c.id for c in repos.clients.get_closed()] == [newer.id, other.id, older.id]
        assert [c.id for c in repos.clients.get_closed("outreach")] == [newer.id, older.id]

    def test_clients_cannot_be_deleted(self, repos):
        assert not hasattr(repos.clients, "delete")


# ============================================================================
# TEST: Evaluation criteria
# ============================================================================

class TestCriteriaRepository:

    def test_ordered_by_priority_then_creation(self, repos):
        b = repos.criteria.create(criteria_data(name="b", priority=2))
        a1 = repos.criteria.create(criteria_data(name="a1", priority=1))
        a2 = repos.criteria.create(criteria_data(name="a2", priority=1))

        assert [c.id for c in repos.criteria.get_all()] == [a1.id, a2.id, b.id]

    def test_priority_ties_keep_insertion_order_with_identical_timestamps(self, repos, monkeypatch):
        frozen = utc_now()
        monkeypatch.setattr("intake_desk.repositories.base.utc_now", lambda: frozen)
        names = ["zeta", "alpha", "mu", "beta"]
        created = [repos.criteria.create(criteria_data(name=name, priority=1)) for name in names]

        assert [c.id for c in repos.criteria.get_all()] == [c.id for c in created]
        assert [c.name for c in repos.criteria.get_active()] == names

    def test_get_active_skips_inactive(self, repos):
        active = repos.criteria.create(criteria_data())
        repos.criteria.create(criteria_data(is_active=False))

        assert [c.id for c in repos.criteria.get_active()] == [active.id]

    def test_delete(self, repos):
        criteria = repos.criteria.create(criteria_data())

        assert repos.criteria.delete(criteria.id) is True
        assert repos.criteria.get_by_id(criteria.id) is None
        assert repos.criteria.delete(criteria.id) is False
        assert repos.criteria.get_all() == []


# ============================================================================
# TEST: Text evaluation rules
# ============================================================================

def rule_data(**overrides):
    data = {
        "name": "Gambling",
        "category": "custom",
        "severity": "medium",
        "patterns": ["gambling debts", r"bet\w* everything"],
        "is_regex": True,
        "negation_words": ["never"],
    }
    data.update(overrides)
    return data


class TestTextEvaluationRuleRepository:

    def test_lists_round_trip_in_insertion_order(self, repos):
        first = repos.text_rules.create(rule_data())
        second = repos.text_rules.create(rule_data(name="Debt", patterns=["in debt"], is_active=False))

        rules = repos.text_rules.get_all()

        assert [r.id for r in rules] == [first.id, second.id]
        assert rules[0].patterns == ["gambling debts", r"bet\w* everything"]
        assert rules[0].negation_words == ["never"]
        assert rules[0].negation_window == 5
        assert rules[0].is_regex is True
        assert [r.id for r in repos.text_rules.get_active()] == [first.id]

    def test_update_and_delete(self, repos):
        rule = repos.text_rules.create(rule_data())

        updated = repos.text_rules.update(rule.id, {"patterns": ["casino"], "severity": "high"})

        assert repos.text_rules.get_by_id(rule.id).patterns == ["casino"]
        assert updated.severity.value == "high"
        assert repos.text_rules.delete(rule.id) is True
        assert repos.text_rules.get_all() == []

    def test_client_keeps_its_text_evaluation_result(self, repos):
        client = repos.clients.create(client_data())
        result = {
            "flags": [{
                "category": "self_harm",
                "severity": "high",
                "matched_text": "cutting myself",
                "context": "I keep cutting myself.",
                "rule_id": "default-self_harm-2",
            }],
            "overall_severity": "high",
            "needs_review": True,
            "evaluated_at": utc_now(),
        }

        repos.clients.update(client.id, {"text_evaluation_result": result})

        stored = repos.clients.get_by_id(client.id).text_evaluation_result
        assert stored.flags[0].matched_text == "cutting myself"
        assert stored.overall_severity.value == "high"
        assert stored.needs_review is True


# ============================================================================
# TEST: Outreach attempts
# ============================================================================

class TestOutreachRepository:

    def test_initialize_creates_pending_attempts(self, repos):
        attempts = repos.outreach.initialize_for_client("client-1", 3)

        assert [a.attempt_number for a in attempts] == [1, 2, 3]
        assert [a.attempt_type for a in attempts] == [
            OutreachAttemptType.INITIAL_OUTREACH,
            OutreachAttemptType.FOLLOW_UP,
            OutreachAttemptType.FOLLOW_UP,
        ]
        assert all(a.status == OutreachAttemptStatus.PENDING for a in attempts)

    def test_initialize_only_fills_gaps(self, repos):
        repos.outreach.create({
            "client_id": "client-1",
            "attempt_number": 2,
            "attempt_type": OutreachAttemptType.FOLLOW_UP,
            "status": OutreachAttemptStatus.SENT,
        })

        attempts = repos.outreach.initialize_for_client("client-1", 3)

        assert [a.attempt_number for a in attempts] == [1, 2, 3]
        assert attempts[1].status == OutreachAttemptStatus.SENT

    def test_delete_by_client_id_counts_rows(self, repos):
        repos.outreach.initialize_for_client("client-1", 2)
        repos.outreach.initialize_for_client("client-2", 1)

        assert repos.outreach.delete_by_client_id("client-1") == 2
        assert repos.outreach.get_by_client_id("client-1") == []
        assert len(repos.outreach.get_by_client_id("client-2")) == 1
        assert repos.outreach.delete_by_client_id("client-1") == 0


# ============================================================================
# TEST: Referral clinics
# ============================================================================

class TestReferralClinicRepository:

    def test_ordered_by_practice_name(self, repos):
        repos.clinics.create({"practice_name": "westside Counseling"})
        repos.clinics.create({"practice_name": "Eastside Therapy", "is_active": False})
        repos.clinics.create({"practice_name": "Northside Wellness", "specialties": ["ADHD", "Trauma"]})

        assert [c.practice_name for c in repos.clinics.get_all()] == [
            "Eastside Therapy",
            "Northside Wellness",
            "westside Counseling",
        ]
        assert [c.practice_name for c in repos.clinics.get_active()] == [
            "Northside Wellness",
            "westside Counseling",
        ]

    def test_custom_fields_round_trip(self, repos):
        clinic = repos.clinics.create({"practice_name": "Eastside", "custom_fields": {"fax": "555-0199"}})

        assert repos.clinics.get_by_id(clinic.id).custom_fields == {"fax": "555-0199"}

    def test_config_defaults_to_empty(self, repos):
        config = repos.clinics_config.get_config()

        assert config.custom_fields == []
        assert config.updated_at is None

    def test_save_custom_fields_replaces_config(self, repos):
        repos.clinics_config.save_custom_fields([
            CustomFieldDefinition(id="f1", name="fax", label="Fax"),
        ])
        repos.clinics_config.save_custom_fields([
            CustomFieldDefinition(id="f2", name="waitlist", label="Waitlist", order=1),
        ])

        config = repos.clinics_config.get_config()

        assert [f.name for f in config.custom_fields] == ["waitlist"]
        assert config.updated_at is not None


# ============================================================================
# TEST: Email templates
# ============================================================================

class TestEmailTemplateRepository:

    def test_creating_a_default_clears_the_previous_one(self, repos):
        first = repos.templates.create(template_data(name="first", is_default=True))
        second = repos.templates.create(template_data(name="second", is_default=True))

        assert repos.templates.get_by_id(first.id).is_default is False
        assert repos.templates.get_by_id(second.id).is_default is True

    def test_get_by_type_default_first_and_active_only(self, repos):
        plain = repos.templates.create(template_data(name="plain"))
        repos.templates.create(template_data(name="inactive", is_active=False))
        default = repos.templates.create(template_data(name="default", is_default=True))
        repos.templates.create(template_data(name="other type", type=EmailTemplateType.FOLLOW_UP_1))

        result = repos.templates.get_by_type("initial_outreach")

        assert [t.id for t in result] == [default.id, plain.id]

    def test_set_default_scoped_to_type(self, repos):
        outreach_default = repos.templates.create(template_data(is_default=True))
        follow_up_default = repos.templates.create(
            template_data(type=EmailTemplateType.FOLLOW_UP_1, is_default=True)
        )
        candidate = repos.templates.create(template_data(name="candidate"))

        updated = repos.templates.set_default(candidate.id)

        assert updated.is_default is True
        assert repos.templates.get_by_id(outreach_default.id).is_default is False
        assert repos.templates.get_by_id(follow_up_default.id).is_default is True

    def test_set_default_unknown(self, repos):
        repos.templates.create(template_data())
        assert repos.templates.set_default("missing") is None


# ============================================================================
# TEST: Settings
# ============================================================================

class TestSettingsRepository:

    def test_set_get_overwrite_delete(self, repos):
        assert repos.settings.get("practiceName") is None

        repos.settings.set("practiceName", "Calm Minds", updated_by="admin@clinic.test")
        repos.settings.set("outreachAttemptCount", "3")
        repos.settings.set("practiceName", "Calm Minds Therapy")

        assert repos.settings.get_all() == {
            "outreachAttemptCount": "3",
            "practiceName": "Calm Minds Therapy",
        }
        assert repos.settings.delete("practiceName") is True
        assert repos.settings.delete("practiceName") is False
        assert repos.settings.get("practiceName") is None


# ============================================================================
# TEST: Audit log and reopen history
# ============================================================================

class TestAuditLogRepository:

    def _entry(self, entity_id, action=AuditAction.UPDATE):
        return AuditLogCreate(
            user_email="staff@clinic.test",
            action=action.value,
            entity_type=AuditEntityType.CLIENT,
            entity_id=entity_id,
            new_value='{"status": "new"}',
        )

    def test_newest_first(self, repos):
        first = repos.audit_log.log(self._entry("c1", AuditAction.CREATE))
        second = repos.audit_log.log(self._entry("c2"))
        third = repos.audit_log.log(self._entry("c1"))

        assert [e.id for e in repos.audit_log.get_all()] == [third.id, second.id, first.id]
        assert [e.id for e in repos.audit_log.get_by_entity_id("c1")] == [third.id, first.id]
        assert [e.id for e in repos.audit_log.get_recent(2)] == [third.id, second.id]

    def test_entries_keep_snapshots(self, repos):
        repos.audit_log.log(self._entry("c1"))

        entry = repos.audit_log.get_all()[0]

        assert entry.action == "update"
        assert entry.entity_type == AuditEntityType.CLIENT
        assert entry.new_value == '{"status": "new"}'
        assert entry.previous_value is None

    def test_is_append_only(self, repos):
        assert not hasattr(repos.audit_log, "update")
        assert not hasattr(repos.audit_log, "delete")


class TestReopenHistoryRepository:

    def test_newest_first_per_client(self, repos):
        now = utc_now()
        older = repos.reopen_history.create({
            "client_id": "c1",
            "previous_status": ClientStatus.CLOSED_OTHER,
            "new_status": ClientStatus.PENDING_OUTREACH,
            "reopen_reason": "Client called back asking to resume",
            "reopened_by": "staff@clinic.test",
            "reopened_at": now - timedelta(days=1),
        })
        newer = repos.reopen_history.create({
            "client_id": "c1",
            "previous_status": ClientStatus.CLOSED_NO_CONTACT,
            "new_status": ClientStatus.OUTREACH_SENT,
            "reopen_reason": "Replied after the case was closed",
            "reopened_by": "staff@clinic.test",
            "reopened_at": now,
        })
        repos.reopen_history.create({
            "client_id": "c2",
            "previous_status": ClientStatus.DUPLICATE,
            "new_status": ClientStatus.NEW,
            "reopen_reason": "Marked duplicate by mistake",
            "reopened_by": "staff@clinic.test",
        })

        assert [h.id for h in repos.reopen_history.get_by_client_id("c1")] == [newer.id, older.id]
