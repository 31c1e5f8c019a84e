# tests/api/test_practice_api.py
"""
Endpoint tests for outreach attempts, settings, email templates,
referral clinics, the audit log and the health check.
"""

import json

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client_id(api, staff_headers):
    response = api.post(
        "/api/clients",
        json={"firstName": "Ana", "lastName": "Lopez", "email": "ana@example.com", "insuranceProvider": "Aetna"},
        headers=staff_headers,
    )
    return response.json()["id"]


# ============================================================================
# TEST: Outreach attempts
# ============================================================================

class TestOutreachApi:

    def url(self, client_id):
        return f"/api/clients/{client_id}/outreach-attempts"

    def test_initialize_uses_attempt_count_setting(self, api, staff_headers, client_id, repos):
        repos.settings.set("outreachAttemptCount", "4")

        response = api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)

        attempts = response.json()["attempts"]
        assert response.status_code == 201
        assert [a["attemptNumber"] for a in attempts] == [1, 2, 3, 4]
        assert attempts[0]["attemptType"] == "initial_outreach"
        assert {a["status"] for a in attempts} == {"pending"}

        entry = repos.audit_log.get_by_entity_id(client_id)[0]
        assert entry.action == "initialize_outreach"
        assert json.loads(entry.previous_value) == []

    def test_initialize_twice_is_idempotent(self, api, staff_headers, client_id):
        api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)
        response = api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)

        assert len(response.json()["attempts"]) == 3

    def test_repeated_initialize_is_audited_once(self, api, staff_headers, client_id, repos):
        api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)
        api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)

        actions = [e.action for e in repos.audit_log.get_by_entity_id(client_id)]
        assert actions.count("initialize_outreach") == 1

    def test_initialize_after_count_grows_is_audited_again(self, api, staff_headers, client_id, repos):
        api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)
        repos.settings.set("outreachAttemptCount", "5")

        response = api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)

        assert [a["attemptNumber"] for a in response.json()["attempts"]] == [1, 2, 3, 4, 5]
        actions = [e.action for e in repos.audit_log.get_by_entity_id(client_id)]
        assert actions.count("initialize_outreach") == 2

    def test_create_single_attempt(self, api, staff_headers, client_id):
        response = api.post(
            self.url(client_id),
            json={"attemptNumber": 1, "attemptType": "initial_outreach", "emailSubject": "Welcome"},
            headers=staff_headers,
        )

        assert response.status_code == 201
        assert response.json()["emailSubject"] == "Welcome"
        assert response.json()["clientId"] == client_id

    def test_duplicate_attempt_number_rejected(self, api, staff_headers, client_id):
        body = {"attemptNumber": 1, "attemptType": "initial_outreach"}
        api.post(self.url(client_id), json=body, headers=staff_headers)

        response = api.post(self.url(client_id), json=body, headers=staff_headers)

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "attemptNumber"

    def test_single_attempt_needs_number_and_type(self, api, staff_headers, client_id):
        response = api.post(self.url(client_id), json={"attemptNumber": 2}, headers=staff_headers)
        assert response.status_code == 400

    def test_update_attempt(self, api, staff_headers, client_id):
        attempts = api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers).json()["attempts"]

        response = api.patch(
            self.url(client_id),
            json={"attemptId": attempts[0]["id"], "status": "sent", "sentAt": "2026-02-01T10:00:00Z"},
            headers=staff_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["sentAt"].startswith("2026-02-01T10:00:00")

    def test_update_attempt_of_another_client(self, api, staff_headers, client_id, repos):
        other = repos.outreach.initialize_for_client("someone-else", 1)[0]

        response = api.patch(
            self.url(client_id),
            json={"attemptId": other.id, "status": "sent"},
            headers=staff_headers,
        )

        assert response.status_code == 404

    def test_delete_all_attempts(self, api, staff_headers, client_id):
        api.post(self.url(client_id), json={"initialize": True}, headers=staff_headers)

        response = api.delete(self.url(client_id), headers=staff_headers)

        assert response.json() == {"deleted": 3}
        assert api.get(self.url(client_id), headers=staff_headers).json() == {"attempts": []}

    def test_unknown_client(self, api, staff_headers):
        assert api.get(self.url("missing"), headers=staff_headers).status_code == 404


# ============================================================================
# TEST: Settings
# ============================================================================

class TestSettingsApi:

    def test_set_and_delete_keys(self, api, staff_headers, repos):
        api.patch(
            "/api/settings",
            json={"settings": {"practiceName": "Calm Minds", "outreachAttemptCount": "3"}},
            headers=staff_headers,
        )

        response = api.patch("/api/settings", json={"settings": {"practiceName": ""}}, headers=staff_headers)

        assert response.json() == {"settings": {"outreachAttemptCount": "3"}}
        assert api.get("/api/settings", headers=staff_headers).json() == {"settings": {"outreachAttemptCount": "3"}}

    def test_one_audit_entry_per_patch(self, api, staff_headers, repos):
        api.patch("/api/settings", json={"settings": {"practiceName": "Calm Minds"}}, headers=staff_headers)

        entries = repos.audit_log.get_by_entity_id("settings")

        assert len(entries) == 1
        assert json.loads(entries[0].previous_value) == {"practiceName": None}
        assert json.loads(entries[0].new_value) == {"practiceName": "Calm Minds"}

    @pytest.mark.parametrize("count", ["zero", "0", "11"])
    def test_invalid_attempt_count_rejected(self, api, staff_headers, count):
        response = api.patch(
            "/api/settings",
            json={"settings": {"outreachAttemptCount": count}},
            headers=staff_headers,
        )

        assert response.status_code == 400


# ============================================================================
# TEST: Email templates
# ============================================================================

TEMPLATE = {
    "name": "Welcome",
    "type": "initial_outreach",
    "subject": "Welcome to {{practiceName}}",
    "body": "Hi {{clientFirstName}}, we accept {{insuranceProvider}}.",
}


class TestTemplatesApi:

    def test_create_records_author(self, api, staff_headers):
        response = api.post("/api/templates", json=TEMPLATE, headers=staff_headers)

        assert response.status_code == 201
        assert response.json()["updatedBy"] == "staff@clinic.test"

    def test_syntax_error_rejected(self, api, staff_headers):
        response = api.post("/api/templates", json={**TEMPLATE, "body": "Hi {{clientFirstName"}, headers=staff_headers)

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "body"

    def test_list_by_type_default_first(self, api, staff_headers):
        api.post("/api/templates", json=TEMPLATE, headers=staff_headers)
        default = api.post("/api/templates", json={**TEMPLATE, "name": "Main"}, headers=staff_headers).json()
        api.post(f"/api/templates/{default['id']}/set-default", headers=staff_headers)

        listing = api.get("/api/templates", params={"type": "initial_outreach"}, headers=staff_headers).json()

        assert [t["name"] for t in listing] == ["Main", "Welcome"]
        assert listing[0]["isDefault"] is True

    def test_preview_against_client(self, api, staff_headers, client_id, repos):
        repos.settings.set("practiceName", "Calm Minds")
        template = api.post("/api/templates", json=TEMPLATE, headers=staff_headers).json()

        response = api.post(
            "/api/templates/preview",
            json={"templateId": template["id"], "clientId": client_id},
            headers=staff_headers,
        )

        body = response.json()
        assert body["subject"] == "Welcome to Calm Minds"
        assert body["body"] == "Hi Ana, we accept Aetna."
        assert body["validation"]["isValid"] is True

    def test_preview_ad_hoc_with_sample_data(self, api, staff_headers):
        response = api.post(
            "/api/templates/preview",
            json={"subject": "Hello", "body": "{{clientFirstName}} {{bogus}}", "variables": {"clientFirstName": "Zoe"}},
            headers=staff_headers,
        )

        body = response.json()
        assert body["body"] == "Zoe "
        assert body["validation"]["unrecognized"] == ["bogus"]
        assert body["validation"]["isValid"] is False

    def test_preview_reports_syntax_error(self, api, staff_headers):
        response = api.post(
            "/api/templates/preview",
            json={"subject": "Hello", "body": "{% if %}"},
            headers=staff_headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["body"] == "{% if %}"
        assert body["validation"]["syntaxError"].startswith("Line 1:")

    def test_preview_needs_a_source(self, api, staff_headers):
        response = api.post("/api/templates/preview", json={"subject": "Hello"}, headers=staff_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("body", [
        "{{ cycler.__init__.__globals__.os.getcwd() }}",
        "{{ clientFirstName.__class__ }}",
        "{{ clientFirstName | upper }}",
        "{% for x in clientFirstName %}{{ x }}{% endfor %}",
    ])
    def test_preview_rejects_expressions_beyond_placeholders(self, api, staff_headers, body):
        response = api.post(
            "/api/templates/preview",
            json={"subject": "Hello", "body": body},
            headers=staff_headers,
        )

        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "body"
        assert "placeholders are allowed" in response.json()["message"]

    def test_create_rejects_attribute_access(self, api, staff_headers):
        response = api.post(
            "/api/templates",
            json={**TEMPLATE, "subject": "{{ practiceName.__class__.__mro__ }}"},
            headers=staff_headers,
        )

        assert response.status_code == 400

    def test_update_validates_the_value_being_saved(self, api, staff_headers):
        template = api.post("/api/templates", json=TEMPLATE, headers=staff_headers).json()

        unsafe = api.patch(
            f"/api/templates/{template['id']}",
            json={"subject": "{{ cycler.__init__ }}"},
            headers=staff_headers,
        )
        empty = api.patch(f"/api/templates/{template['id']}", json={"subject": ""}, headers=staff_headers)

        assert unsafe.status_code == 400
        assert empty.status_code == 400
        assert api.get(f"/api/templates/{template['id']}", headers=staff_headers).json()["subject"] == TEMPLATE["subject"]

    def test_update_and_delete(self, api, staff_headers):
        template = api.post("/api/templates", json=TEMPLATE, headers=staff_headers).json()

        updated = api.patch(
            f"/api/templates/{template['id']}",
            json={"subject": "Hi from {{practiceName}}"},
            headers=staff_headers,
        ).json()
        deleted = api.delete(f"/api/templates/{template['id']}", headers=staff_headers)

        assert updated["subject"] == "Hi from {{practiceName}}"
        assert updated["body"] == TEMPLATE["body"]
        assert deleted.json() == {"success": True}
        assert api.get(f"/api/templates/{template['id']}", headers=staff_headers).status_code == 404


# ============================================================================
# TEST: Referral clinics
# ============================================================================

class TestReferralClinicsApi:

    def test_custom_fields_must_be_configured(self, api, staff_headers):
        clinic = {"practiceName": "Eastside", "customFields": {"fax": "555-0199"}}

        rejected = api.post("/api/referral-clinics", json=clinic, headers=staff_headers)
        api.put(
            "/api/referral-clinics/config",
            json={"customFields": [{"id": "f1", "name": "fax", "label": "Fax", "type": "phone"}]},
            headers=staff_headers,
        )
        accepted = api.post("/api/referral-clinics", json=clinic, headers=staff_headers)

        assert rejected.status_code == 400
        assert rejected.json()["details"][0]["field"] == "customFields"
        assert accepted.status_code == 201
        assert accepted.json()["customFields"] == {"fax": "555-0199"}

    def test_config_names_must_be_unique(self, api, staff_headers):
        response = api.put(
            "/api/referral-clinics/config",
            json={"customFields": [
                {"id": "f1", "name": "fax", "label": "Fax"},
                {"id": "f2", "name": "fax", "label": "Fax again"},
            ]},
            headers=staff_headers,
        )

        assert response.status_code == 400

    def test_active_only_filter_and_specialty_dedupe(self, api, staff_headers):
        api.post(
            "/api/referral-clinics",
            json={"practiceName": "Westside", "specialties": ["ADHD", " ADHD ", "Trauma"]},
            headers=staff_headers,
        )
        api.post("/api/referral-clinics", json={"practiceName": "Closed Clinic", "isActive": False}, headers=staff_headers)

        active = api.get("/api/referral-clinics", params={"activeOnly": "true"}, headers=staff_headers).json()

        assert [c["practiceName"] for c in active] == ["Westside"]
        assert active[0]["specialties"] == ["ADHD", "Trauma"]

    def test_update_and_delete(self, api, staff_headers):
        clinic = api.post("/api/referral-clinics", json={"practiceName": "Eastside"}, headers=staff_headers).json()

        updated = api.patch(
            f"/api/referral-clinics/{clinic['id']}",
            json={"phone": "555-0123"},
            headers=staff_headers,
        ).json()
        api.delete(f"/api/referral-clinics/{clinic['id']}", headers=staff_headers)

        assert updated["phone"] == "555-0123"
        assert api.get(f"/api/referral-clinics/{clinic['id']}", headers=staff_headers).status_code == 404


# ============================================================================
# TEST: Audit log
# ============================================================================

class TestAuditLogApi:

    def test_admin_reads_recent_entries(self, api, admin_headers, client_id):
        response = api.get("/api/audit-log", params={"limit": 10}, headers=admin_headers)

        body = response.json()
        assert body["total"] == 1
        assert body["entries"][0]["entityId"] == client_id
        assert body["entries"][0]["entityType"] == "client"
        assert body["entries"][0]["userEmail"] == "staff@clinic.test"

    def test_entity_trail(self, api, admin_headers, staff_headers, client_id):
        api.patch(f"/api/clients/{client_id}", json={"phone": "1"}, headers=staff_headers)

        body = api.get(f"/api/audit-log/{client_id}", headers=admin_headers).json()

        assert [e["action"] for e in body["entries"]] == ["update", "create"]

    def test_staff_forbidden(self, api, staff_headers):
        assert api.get("/api/audit-log", headers=staff_headers).status_code == 403


# ============================================================================
# TEST: Health
# ============================================================================

class TestHealth:

    @pytest.fixture
    def plain_client(self):
        from intake_desk.main import app
        return TestClient(app)

    def test_database_backend(self, plain_client):
        body = plain_client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["storage_backend"] == "database"
        assert body["storage"] == "connected"

    def test_sheets_backend_reports_configuration(self, plain_client, monkeypatch):
        from intake_desk.core.config import settings

        monkeypatch.setattr(settings, "storage_backend", "sheets")
        assert plain_client.get("/health").json()["storage"] == "configured"

        monkeypatch.setattr(settings, "google_sheets_access_token", "")
        body = plain_client.get("/health").json()
        assert body["storage"] == "unconfigured"
        assert body["status"] == "unhealthy"
