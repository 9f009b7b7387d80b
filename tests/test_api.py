from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import orderflow.database.db as db_module
from orderflow.auth.jwt import create_access_token
from orderflow.core.config import get_config
from orderflow.main import create_app
from orderflow.models import Base, ProjectRequest, User, UserRole

PREFIX = get_config().API_PREFIX


@pytest.fixture
def api(tmp_path):
    original_url = db_module.get_active_database_url()
    db_module.reset_engine(f"sqlite:///{tmp_path}/api.db")
    Base.metadata.create_all(db_module.get_engine())
    try:
        yield TestClient(create_app())
    finally:
        db_module.reset_engine(original_url)


@pytest.fixture
def seed(api):
    """Admin, a second client and a fresh project request; returns their ids."""
    db = db_module.get_session_factory()()
    try:
        admin = User(email="admin@agency.test", role=UserRole.ADMIN)
        outsider = User(email="outsider@example.com", role=UserRole.CLIENT)
        request = ProjectRequest(full_name="Casey Client", email="client@example.com", details="Storefront")
        db.add_all([admin, outsider, request])
        db.commit()
        return {"admin": admin.id, "outsider": outsider.id, "request": request.id}
    finally:
        db.close()


def _auth(user_id: int, role: str) -> dict[str, str]:
    token = create_access_token(user_id=user_id, role=role, secret=get_config().JWT_SECRET)
    return {"Authorization": f"Bearer {token}"}


def _issue(api, seed, **overrides) -> dict:
    payload = {
        "request_id": seed["request"],
        "amount": "1000.00",
        "scope": "Storefront build",
        "plan": {
            "project_title": "Storefront",
            "service_ref": "ecommerce",
            "phases": [
                {"key": "req", "title": "Discovery", "group": "REQUIREMENTS"},
                {"key": "qa", "title": "Testing", "group": "QA"},
            ],
            "payments": [{"label": "Before QA", "amount": "500", "before_phase_key": "qa"}],
        },
    }
    payload.update(overrides)
    response = api.post(f"{PREFIX}/quotes", json=payload, headers=_auth(seed["admin"], "admin"))
    assert response.status_code == 201, response.text
    return response.json()


def test_health_and_root(api):
    health = api.get(f"{PREFIX}/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["database"] == "ok"
    assert api.get("/").json()["api_prefix"] == PREFIX


def test_auth_errors_map_to_401_and_403(api, seed):
    assert api.get(f"{PREFIX}/quotes").status_code == 401
    assert api.get(f"{PREFIX}/quotes", headers={"Authorization": "Token abc"}).status_code == 401
    assert api.get(f"{PREFIX}/quotes", headers={"Authorization": "Bearer nonsense"}).status_code == 401

    forbidden = api.post(
        f"{PREFIX}/quotes",
        json={"request_id": seed["request"], "amount": "10", "scope": "x"},
        headers=_auth(seed["outsider"], "client"),
    )
    assert forbidden.status_code == 403


def test_quote_to_delivery_flow(api, seed):
    issued = _issue(api, seed)
    token = issued["token"]
    quote_id = issued["quote"]["id"]
    assert issued["quote"]["status"] == "DRAFT"
    assert issued["magic_link"].endswith(token)

    login = api.post(f"{PREFIX}/auth/login", json={"credential": token})
    assert login.status_code == 200, login.text
    assert login.json()["role"] == "client"
    assert login.json()["quote_id"] == quote_id
    client_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    viewed = api.get(f"{PREFIX}/quotes/{quote_id}", headers=client_headers)
    assert viewed.status_code == 200
    assert viewed.json()["status"] == "SENT"
    assert [phase["key"] for phase in viewed.json()["plan"]["phases"]] == ["req", "qa"]

    accepted = api.post(f"{PREFIX}/quotes/{quote_id}/accept", json={"token": token})
    assert accepted.status_code == 200, accepted.text
    body = accepted.json()
    assert body["created"] is True
    replay = api.post(f"{PREFIX}/quotes/{quote_id}/accept", headers=client_headers).json()
    assert replay["created"] is False
    assert replay["order_id"] == body["order_id"]

    project = api.get(f"{PREFIX}/projects/{body['project_id']}", headers=client_headers).json()
    assert project["status"] == "REQUIREMENTS"
    admin_headers = _auth(seed["admin"], "admin")
    for phase in project["phases"]:
        response = api.patch(
            f"{PREFIX}/projects/{project['id']}/phases/{phase['id']}",
            json={"status": "COMPLETED"},
            headers=admin_headers,
        )
        assert response.status_code == 200, response.text

    order = api.get(f"{PREFIX}/orders/{body['order_id']}", headers=client_headers).json()
    assert order["status"] == "DELIVERED"
    assert Decimal(order["total_amount"]) == Decimal("1000")

    outsider = _auth(seed["outsider"], "client")
    assert api.get(f"{PREFIX}/projects/{project['id']}", headers=outsider).status_code == 403
    assert api.get(f"{PREFIX}/orders/{body['order_id']}", headers=outsider).status_code == 403


def test_payments_and_change_requests(api, seed):
    issued = _issue(api, seed, plan=None)
    admin_headers = _auth(seed["admin"], "admin")
    body = api.post(f"{PREFIX}/quotes/{issued['quote']['id']}/accept", headers=admin_headers).json()
    project_id, order_id = body["project_id"], body["order_id"]

    change = api.post(
        f"{PREFIX}/projects/{project_id}/changes",
        json={"title": "Blog", "amount": "200"},
        headers=admin_headers,
    )
    assert change.status_code == 201, change.text
    decided = api.post(f"{PREFIX}/projects/{project_id}/changes/{change.json()['id']}/accept", headers=admin_headers)
    assert decided.json()["status"] == "ACCEPTED"
    order = api.get(f"{PREFIX}/orders/{order_id}", headers=admin_headers).json()
    assert Decimal(order["total_amount"]) == Decimal("1200")

    milestones = api.get(f"{PREFIX}/payments", params={"project_id": project_id}, headers=admin_headers).json()
    assert [m["label"] for m in milestones] == ["Change request: Blog"]
    milestone_id = milestones[0]["id"]
    api.post(f"{PREFIX}/payments/{milestone_id}/proof", json={"proof_ref": "wire-991"}, headers=admin_headers)
    reviewed = api.post(
        f"{PREFIX}/payments/{milestone_id}/review",
        json={"decision": "APPROVED"},
        headers=admin_headers,
    )
    assert reviewed.json()["status"] == "APPROVED"
    again = api.post(
        f"{PREFIX}/payments/{milestone_id}/review",
        json={"decision": "REJECTED"},
        headers=admin_headers,
    )
    assert again.status_code == 409
    assert again.json()["detail"]["error_code"] == "InvalidTransitionError"

    paid = api.get(f"{PREFIX}/orders/{order_id}/paid-amount", headers=admin_headers).json()
    assert Decimal(paid["paid_amount"]) == Decimal("200")


def test_domain_errors_are_mapped(api, seed):
    bad_redeem = api.post(f"{PREFIX}/quotes/redeem", json={"token": "nope"})
    assert bad_redeem.status_code == 400
    assert bad_redeem.json()["detail"]["error_code"] == "InvalidOrExpiredTokenError"

    bad_login = api.post(f"{PREFIX}/auth/login", json={"credential": "nope"})
    assert bad_login.status_code == 401
    assert bad_login.json()["detail"] == "Invalid credentials."

    admin_headers = _auth(seed["admin"], "admin")
    assert api.get(f"{PREFIX}/orders/9999", headers=admin_headers).status_code == 404

    invalid = api.post(
        f"{PREFIX}/quotes",
        json={"request_id": seed["request"], "amount": "0", "scope": "x"},
        headers=admin_headers,
    )
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["field"] == "amount"

    issued = _issue(api, seed)
    quote_id = issued["quote"]["id"]
    assert api.post(f"{PREFIX}/quotes/{quote_id}/reject", json={"token": issued["token"]}).status_code == 200
    conflict = api.post(f"{PREFIX}/quotes/{quote_id}/accept", headers=admin_headers)
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["error_code"] == "AlreadyRejectedError"
    assert api.post(f"{PREFIX}/quotes/{quote_id}/accept").status_code == 403


def test_orders_and_referrals(api, seed):
    outsider = _auth(seed["outsider"], "client")
    admin_headers = _auth(seed["admin"], "admin")

    placed = api.post(f"{PREFIX}/orders", json={"service_ref": "logo", "total_amount": "150"}, headers=outsider)
    assert placed.status_code == 201, placed.text
    assert placed.json()["status"] == "PENDING"
    assert [o["id"] for o in api.get(f"{PREFIX}/orders", headers=outsider).json()] == [placed.json()["id"]]

    status_change = api.patch(
        f"{PREFIX}/orders/{placed.json()['id']}/status",
        json={"status": "CANCELLED"},
        headers=admin_headers,
    )
    assert status_change.json()["status"] == "CANCELLED"

    mine = api.get(f"{PREFIX}/referrals", headers=outsider).json()
    assert len(mine["referral_code"]) == 6
    assert mine["link"].endswith(f"?ref={mine['referral_code']}")
    assert mine["referrals"] == 0
    assert api.get(f"{PREFIX}/referrals/all", headers=outsider).status_code == 403
    assert api.get(f"{PREFIX}/referrals/all", headers=admin_headers).status_code == 200


def test_paid_revision_lifecycle(api, seed):
    issued = _issue(api, seed, plan=None)
    login = api.post(f"{PREFIX}/auth/login", json={"credential": issued["token"]}).json()
    client_headers = {"Authorization": f"Bearer {login['access_token']}"}
    admin_headers = _auth(seed["admin"], "admin")
    project_id = api.post(f"{PREFIX}/quotes/{issued['quote']['id']}/accept", headers=client_headers).json()["project_id"]
    base = f"{PREFIX}/projects/{project_id}/revisions"

    assert api.post(base, json={"title": "Tweaks", "amount": "0"}, headers=client_headers).status_code == 400
    created = api.post(base, json={"title": "Tweaks", "amount": "90"}, headers=client_headers)
    assert created.status_code == 201, created.text
    revision_url = f"{base}/{created.json()['id']}"

    assert api.patch(revision_url, json={"status": "IN_PROGRESS"}, headers=client_headers).status_code == 403
    proposed = api.patch(revision_url, json={"client_proposed_note": "Friday"}, headers=client_headers)
    assert proposed.json()["client_proposed_note"] == "Friday"

    api.patch(revision_url, json={"status": "IN_PROGRESS", "session_links": ["https://meet.example.com/x"]}, headers=admin_headers)
    delivered = api.patch(revision_url, json={"status": "DELIVERED", "note": "Done"}, headers=admin_headers).json()
    assert delivered["status"] == "DELIVERED"
    assert delivered["completed_at"] is not None
    assert delivered["session_links"] == ["https://meet.example.com/x"]

    skipped = api.patch(revision_url, json={"status": "PENDING"}, headers=admin_headers)
    assert skipped.status_code == 409
    assert [r["id"] for r in api.get(base, headers=client_headers).json()] == [created.json()["id"]]
    assert api.get(base, headers=_auth(seed["outsider"], "client")).status_code == 403
