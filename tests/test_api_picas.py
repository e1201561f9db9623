"""
HTTP tests for the PICA and user blueprints.

Scenarios:
  - anonymous readers see nothing and cannot write
  - users create and update, only admins delete
  - overdue derivation on read, with exactly one history entry
  - explicit status change with a custom comment
  - the same business key in two organizations
  - cross-tenant access answers 404
  - guarded user deletion
"""

import pytest

from pica_monitor.models import db
from pica_monitor.models.organization import User
from pica_monitor.models.pica import PicaHistory


@pytest.fixture()
def user_headers(tenant_a, auth_headers):
    return auth_headers(tenant_a["user_id"], tenant_a["organization_id"], "user")


@pytest.fixture()
def admin_headers(tenant_a, auth_headers):
    return auth_headers(tenant_a["admin_id"], tenant_a["organization_id"], "admin")


def _create(client, headers, payload):
    res = client.post("/api/v1/picas", json=payload, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════
# Authentication & permissions
# ═════════════════════════════════════════════════════════════════════════


class TestAccessControl:
    def test_anonymous_list_is_empty(self, client, tenant_a, user_headers, pica_payload):
        _create(client, user_headers, pica_payload(tenant_a))

        res = client.get("/api/v1/picas")

        assert res.status_code == 200
        assert res.get_json() == {"items": [], "total": 0}

    def test_anonymous_create_is_401(self, client, tenant_a, pica_payload):
        res = client.post("/api/v1/picas", json=pica_payload(tenant_a))
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_anonymous_update_is_401(self, client, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a))
        res = client.put(f"/api/v1/picas/{created['id']}", json={"status": "complete"})
        assert res.status_code == 401

    def test_invalid_token_is_treated_as_anonymous(self, client, tenant_a, pica_payload):
        headers = {"Authorization": "Bearer not-a-token"}
        assert client.get("/api/v1/picas", headers=headers).get_json()["total"] == 0
        assert client.post("/api/v1/picas", json=pica_payload(tenant_a), headers=headers).status_code == 401

    def test_user_cannot_delete(self, client, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a))
        res = client.delete(f"/api/v1/picas/{created['id']}", headers=user_headers)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_admin_full_cycle(self, client, tenant_a, admin_headers, pica_payload):
        created = _create(client, admin_headers, pica_payload(tenant_a, due_date="2099-01-01"))
        pid = created["id"]

        res = client.put(f"/api/v1/picas/{pid}", json={"corrective_action": "Swap belt"}, headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["corrective_action"] == "Swap belt"

        res = client.delete(f"/api/v1/picas/{pid}", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json() == {"deleted": True, "id": pid}

        assert client.get(f"/api/v1/picas/{pid}", headers=admin_headers).status_code == 404
        assert client.delete(f"/api/v1/picas/{pid}", headers=admin_headers).status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# Validation & conflicts
# ═════════════════════════════════════════════════════════════════════════


class TestValidation:
    def test_malformed_json_is_400(self, client, user_headers):
        res = client.post(
            "/api/v1/picas", data="{not json", content_type="application/json", headers=user_headers,
        )
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_json_array_body_is_400(self, client, user_headers):
        res = client.post("/api/v1/picas", json=[1, 2], headers=user_headers)
        assert res.status_code == 400

    def test_missing_fields_are_422_with_details(self, client, user_headers):
        res = client.post("/api/v1/picas", json={"business_key": "X"}, headers=user_headers)
        body = res.get_json()
        assert res.status_code == 422
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "due_date" in body["details"]

    def test_unknown_status_is_422(self, client, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a))
        res = client.put(f"/api/v1/picas/{created['id']}", json={"status": "closed"}, headers=user_headers)
        assert res.status_code == 422

    def test_non_string_comment_is_422(self, client, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a))
        res = client.put(
            f"/api/v1/picas/{created['id']}", json={"status": "complete", "comment": 5}, headers=user_headers,
        )
        assert res.status_code == 422

    def test_wrong_content_type_is_415(self, client, user_headers):
        res = client.post("/api/v1/picas", data="a=b", content_type="text/plain", headers=user_headers)
        assert res.status_code == 415

    def test_duplicate_business_key_is_409(self, client, tenant_a, user_headers, pica_payload):
        _create(client, user_headers, pica_payload(tenant_a))
        res = client.post("/api/v1/picas", json=pica_payload(tenant_a), headers=user_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_invalid_status_filter_is_422(self, client, user_headers):
        assert client.get("/api/v1/picas?status=closed", headers=user_headers).status_code == 422


# ═════════════════════════════════════════════════════════════════════════
# Lifecycle scenarios
# ═════════════════════════════════════════════════════════════════════════


class TestLifecycle:
    def test_overdue_is_derived_on_read_once(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a, due_date="2025-04-07"))
        pid = created["id"]
        assert created["status"] == "progress"

        listed = client.get("/api/v1/picas", headers=user_headers).get_json()
        assert listed["items"][0]["status"] == "overdue"
        assert listed["items"][0]["project_site"]["id"] == tenant_a["site_id"]

        client.get(f"/api/v1/picas/{pid}", headers=user_headers)
        client.get("/api/v1/picas/status/overdue", headers=user_headers)

        history = client.get(f"/api/v1/picas/{pid}/history", headers=user_headers).get_json()
        assert history["total"] == 1
        entry = history["items"][0]
        assert (entry["old_status"], entry["new_status"]) == ("progress", "overdue")
        assert entry["actor_id"] is None

    def test_not_yet_due_stays_in_progress(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a, due_date="2025-04-10"))
        res = client.get(f"/api/v1/picas/{created['id']}", headers=user_headers)
        assert res.get_json()["status"] == "progress"

    def test_complete_with_comment(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a))
        pid = created["id"]

        res = client.put(
            f"/api/v1/picas/{pid}",
            json={"status": "complete", "comment": "fixed", "update_date": "2025-04-09T08:00:00Z"},
            headers=user_headers,
        )
        assert res.status_code == 200
        assert res.get_json()["status"] == "complete"

        # same status again appends nothing
        client.put(f"/api/v1/picas/{pid}", json={"status": "complete"}, headers=user_headers)

        history = client.get(f"/api/v1/picas/{pid}/history", headers=user_headers).get_json()["items"]
        assert len(history) == 1
        assert history[0]["comment"] == "fixed"
        assert history[0]["actor"]["id"] == tenant_a["user_id"]
        assert history[0]["timestamp"].startswith("2025-04-09T08:00:00")

    def test_completed_record_is_never_rederived(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a, due_date="2025-04-01"))
        client.put(f"/api/v1/picas/{created['id']}", json={"status": "complete"}, headers=user_headers)

        res = client.get(f"/api/v1/picas/{created['id']}", headers=user_headers)

        assert res.get_json()["status"] == "complete"
        assert PicaHistory.query.filter_by(pica_id=created["id"]).count() == 1

    def test_stats(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        _create(client, user_headers, pica_payload(tenant_a, business_key="A-1"))
        done = _create(client, user_headers, pica_payload(tenant_a, business_key="A-2"))
        client.put(f"/api/v1/picas/{done['id']}", json={"status": "complete"}, headers=user_headers)

        stats = client.get("/api/v1/picas/stats", headers=user_headers).get_json()

        assert stats == {"progress": 1, "complete": 1, "overdue": 0, "total": 2}

    def test_by_key(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a))
        res = client.get("/api/v1/picas/by-key/2504NPR01", headers=user_headers)
        assert res.status_code == 200
        assert res.get_json()["id"] == created["id"]
        assert client.get("/api/v1/picas/by-key/NOPE", headers=user_headers).status_code == 404

    def test_every_read_agrees_on_overdue(self, client, fixed_today, tenant_a, user_headers, pica_payload):
        pid = _create(client, user_headers, pica_payload(tenant_a, due_date="2025-04-07"))["id"]

        by_key = client.get("/api/v1/picas/by-key/2504NPR01", headers=user_headers).get_json()
        assert by_key["status"] == "overdue"
        assert by_key["person_in_charge"]["id"] == tenant_a["person_id"]

        stats = client.get("/api/v1/picas/stats", headers=user_headers).get_json()
        assert stats == {"progress": 0, "complete": 0, "overdue": 1, "total": 1}

        assert client.get(f"/api/v1/picas/{pid}", headers=user_headers).get_json()["status"] == "overdue"
        assert PicaHistory.query.filter_by(pica_id=pid).count() == 1


# ═════════════════════════════════════════════════════════════════════════
# Tenant isolation
# ═════════════════════════════════════════════════════════════════════════


class TestTenantIsolation:
    def test_same_business_key_in_two_organizations(
        self, client, fixed_today, tenant_a, tenant_b, auth_headers, pica_payload,
    ):
        ha = auth_headers(tenant_a["user_id"], tenant_a["organization_id"], "user")
        hb = auth_headers(tenant_b["user_id"], tenant_b["organization_id"], "user")

        ra = _create(client, ha, pica_payload(tenant_a))
        rb = _create(client, hb, pica_payload(tenant_b))

        assert [r["id"] for r in client.get("/api/v1/picas", headers=ha).get_json()["items"]] == [ra["id"]]
        assert [r["id"] for r in client.get("/api/v1/picas", headers=hb).get_json()["items"]] == [rb["id"]]

    def test_cross_tenant_access_is_404(self, client, fixed_today, tenant_a, tenant_b, auth_headers, pica_payload):
        ha = auth_headers(tenant_a["user_id"], tenant_a["organization_id"], "user")
        hb_admin = auth_headers(tenant_b["admin_id"], tenant_b["organization_id"], "admin")
        pid = _create(client, ha, pica_payload(tenant_a))["id"]

        assert client.get(f"/api/v1/picas/{pid}", headers=hb_admin).status_code == 404
        assert client.get(f"/api/v1/picas/{pid}/history", headers=hb_admin).status_code == 404
        assert client.put(f"/api/v1/picas/{pid}", json={"status": "complete"}, headers=hb_admin).status_code == 404
        assert client.delete(f"/api/v1/picas/{pid}", headers=hb_admin).status_code == 404

        assert client.get(f"/api/v1/picas/{pid}", headers=ha).get_json()["status"] == "progress"

    def test_payload_organization_is_ignored(self, client, tenant_a, tenant_b, user_headers, pica_payload):
        created = _create(client, user_headers, pica_payload(tenant_a, organization_id=tenant_b["organization_id"]))
        assert created["organization_id"] == tenant_a["organization_id"]

    def test_token_without_organization_cannot_write(self, client, tenant_a, auth_headers, pica_payload):
        headers = auth_headers(tenant_a["admin_id"], None, "admin")
        assert client.post("/api/v1/picas", json=pica_payload(tenant_a), headers=headers).status_code == 403
        assert client.get("/api/v1/picas", headers=headers).get_json()["total"] == 0


# ═════════════════════════════════════════════════════════════════════════
# User deletion
# ═════════════════════════════════════════════════════════════════════════


class TestUserDelete:
    def test_admin_cannot_delete_self(self, client, tenant_a, admin_headers):
        res = client.delete(f"/api/v1/users/{tenant_a['admin_id']}", headers=admin_headers)
        assert res.status_code == 400
        assert db.session.get(User, tenant_a["admin_id"]) is not None

    def test_admin_deletes_other_user(self, client, tenant_a, admin_headers):
        res = client.delete(f"/api/v1/users/{tenant_a['user_id']}", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json() == {"deleted": True, "id": tenant_a["user_id"]}
        db.session.expire_all()
        assert db.session.get(User, tenant_a["user_id"]) is None

    def test_history_survives_actor_deletion(
        self, client, tenant_a, user_headers, admin_headers, pica_payload,
    ):
        pid = _create(client, user_headers, pica_payload(tenant_a, due_date="2099-01-01"))["id"]
        client.put(f"/api/v1/picas/{pid}", json={"status": "complete"}, headers=user_headers)

        assert client.delete(f"/api/v1/users/{tenant_a['user_id']}", headers=admin_headers).status_code == 200

        items = client.get(f"/api/v1/picas/{pid}/history", headers=admin_headers).get_json()["items"]
        assert len(items) == 1
        assert items[0]["actor_id"] == tenant_a["user_id"]
        assert items[0]["actor"] is None
        assert PicaHistory.query.filter_by(pica_id=pid).one().actor_id == tenant_a["user_id"]

    def test_user_role_cannot_delete_users(self, client, tenant_a, user_headers):
        res = client.delete(f"/api/v1/users/{tenant_a['admin_id']}", headers=user_headers)
        assert res.status_code == 403

    def test_other_organization_user_is_404(self, client, tenant_b, admin_headers):
        res = client.delete(f"/api/v1/users/{tenant_b['user_id']}", headers=admin_headers)
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════
# Health
# ═════════════════════════════════════════════════════════════════════════


class TestHealth:
    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["store"]["status"] == "ok"
