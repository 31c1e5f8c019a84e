# tests/services/test_audit.py
"""
Tests for AuditService: one entry per call, actor and IP captured,
snapshots serialised as camelCase JSON.
"""

import json

from starlette.requests import Request

from intake_desk.core.auth import Actor
from intake_desk.models.audit_log import AuditAction, AuditEntityType
from intake_desk.services.audit import AuditService, get_client_ip, serialize_snapshot


ACTOR = Actor(user_id="staff", email="staff@clinic.test")


def make_request(headers=None, client=("10.0.0.9", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestSerializeSnapshot:

    def test_record_uses_camel_case(self, client_factory):
        client = client_factory(payment_type="Self-Pay")

        data = json.loads(serialize_snapshot(client))

        assert data["firstName"] == "Ana"
        assert data["paymentType"] == "Self-Pay"
        assert "first_name" not in data

    def test_plain_values(self):
        assert serialize_snapshot(None) is None
        assert json.loads(serialize_snapshot({"practiceName": "Calm"})) == {"practiceName": "Calm"}
        assert json.loads(serialize_snapshot([1, 2])) == [1, 2]


class TestAuditService:

    def test_create_has_no_previous_value(self, db_repos, client_factory):
        audit = AuditService(db_repos.audit_log, ACTOR, "10.0.0.1")
        client = client_factory()

        entry = audit.log_create(AuditEntityType.CLIENT, client.id, client)

        assert entry.action == AuditAction.CREATE.value
        assert entry.previous_value is None
        assert json.loads(entry.new_value)["id"] == client.id
        assert entry.user_email == "staff@clinic.test"
        assert entry.user_id == "staff"
        assert entry.ip_address == "10.0.0.1"

    def test_delete_has_no_new_value(self, db_repos, client_factory):
        audit = AuditService(db_repos.audit_log, ACTOR)

        entry = audit.log_delete(AuditEntityType.CLIENT, "c1", client_factory())

        assert entry.new_value is None
        assert entry.previous_value is not None

    def test_update_and_custom_action_each_write_one_entry(self, repos, client_factory):
        audit = AuditService(repos.audit_log, ACTOR)
        before = client_factory()
        after = before.model_copy(update={"phone": "555-0100"})

        audit.log_update(AuditEntityType.CLIENT, before.id, before, after)
        audit.log(AuditAction.CLOSE_CASE, AuditEntityType.CLIENT, before.id, previous=before, new=after)

        entries = repos.audit_log.get_by_entity_id(before.id)
        assert [e.action for e in entries] == ["close_case", "update"]
        assert json.loads(entries[1].new_value)["phone"] == "555-0100"


class TestClientIp:

    def test_forwarded_for_wins(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})
        assert get_client_ip(request) == "203.0.113.7"

    def test_falls_back_to_peer(self):
        assert get_client_ip(make_request()) == "10.0.0.9"

    def test_no_peer(self):
        assert get_client_ip(make_request(client=None)) is None
