from fastapi.testclient import TestClient

import app.api.routes.registrations as registration_routes
from app.api.dependencies import get_store
from app.db.store import MemoryDocumentStore
from app.main import app

from conftest import API, add_item, add_registration


def test_health(client):
    response = client.get(f"{API}/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_register_json_then_repeat(client):
    payload = {"full_name": "Ana Lopez", "email": "ana@example.com"}

    first = client.post(f"{API}/registrations", json=payload)
    second = client.post(f"{API}/registrations", json={**payload, "full_name": "Ana Other"})

    assert first.status_code == 200
    assert first.json()["status"] == "created"
    assert second.json() == {
        "status": "existing",
        "full_name": "Ana Lopez",
        "redirect_url": "/success?name=Ana+Lopez&existing=true",
    }


def test_register_validation_reports_fields(client, store):
    response = client.post(f"{API}/registrations", json={"full_name": "A", "email": "nope"})

    assert response.status_code == 422
    fields = {error["loc"][-1] for error in response.json()["detail"]}
    assert fields == {"full_name", "email"}
    assert store.list("registrations") == []


def test_register_form_redirects(client):
    response = client.post(
        f"{API}/registrations/form",
        data={"full_name": "Ana Lopez", "email": "ana@example.com"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/success?name=Ana+Lopez"


def test_register_form_validation_errors(client):
    response = client.post(
        f"{API}/registrations/form",
        data={"full_name": "A", "email": "ana@example.com"},
        follow_redirects=False,
    )

    assert response.status_code == 422
    assert "full_name" in response.json()["detail"]["errors"]


def test_closed_registration(client, admin_headers):
    toggle = client.put(
        f"{API}/settings/registration", json={"is_open": False}, headers=admin_headers
    )
    response = client.post(
        f"{API}/registrations", json={"full_name": "Ana Lopez", "email": "ana@example.com"}
    )

    assert toggle.json()["message"] == "Registration is now closed."
    assert client.get(f"{API}/settings/registration").json() == {"is_open": False}
    assert response.status_code == 403


def test_admin_routes_require_token(client):
    assert client.put(f"{API}/settings/registration", json={"is_open": False}).status_code == 401
    assert client.get(f"{API}/raffle/round").status_code == 401
    bad = {"Authorization": "Bearer forged.0.signature"}
    assert client.get(f"{API}/winners", headers=bad).status_code == 401


def test_only_admins_can_add_admins(client, admin_headers):
    payload = {"name": "Second", "email": "second@example.com", "password": "anothersecret"}

    anonymous = client.post(f"{API}/auth/register", json=payload)
    invited = client.post(f"{API}/auth/register", json=payload, headers=admin_headers)
    again = client.post(f"{API}/auth/register", json=payload, headers=admin_headers)

    assert anonymous.status_code == 401
    assert invited.status_code == 201
    assert again.status_code == 409


def test_login_with_wrong_password(client, admin_headers):
    response = client.post(
        f"{API}/auth/login", json={"email": "admin@example.com", "password": "wrongpassword"}
    )

    assert response.status_code == 401


def test_catalog_crud(client, admin_headers):
    item = {"id": "P1", "name": "Teddy bear", "description": "Soft toy", "prize_type": "minor"}

    created = client.post(f"{API}/raffle-items", json=item, headers=admin_headers)
    duplicate = client.post(f"{API}/raffle-items", json=item, headers=admin_headers)
    patched = client.patch(
        f"{API}/raffle-items/P1", json={"prize_type": "major"}, headers=admin_headers
    )
    deleted = client.delete(f"{API}/raffle-items/P1", headers=admin_headers)

    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["message"] == "This Item ID is already in use."
    assert patched.json()["prize_type"] == "major"
    assert deleted.json() == {"status": "deleted", "item_id": "P1"}
    assert client.get(f"{API}/raffle-items/P1").status_code == 404


def test_bulk_csv_upload(client, admin_headers):
    csv_text = (
        "id,name,description,prizeType\n"
        'P1,"Toy, deluxe",A toy,minor\n'
        "P2,Road bike,A red bike,major\n"
    )

    response = client.post(
        f"{API}/raffle-items/bulk/csv",
        files={"file": ("items.csv", csv_text, "text/csv")},
        headers=admin_headers,
    )
    again = client.post(
        f"{API}/raffle-items/bulk/csv",
        files={"file": ("items.csv", csv_text, "text/csv")},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Upload complete.", "inserted_count": 2, "errors": []}
    assert again.status_code == 200
    assert again.json()["inserted_count"] == 0
    assert len(again.json()["errors"]) == 2
    names = [item["name"] for item in client.get(f"{API}/raffle-items").json()]
    assert names == ["Road bike", "Toy, deluxe"]


def test_bulk_json_duplicate_ids(client, admin_headers):
    rows = [
        {"id": "P1", "name": "Teddy bear", "description": "Soft toy", "prizeType": "minor"},
        {"id": "P1", "name": "Road bike", "description": "A red bike", "prizeType": "major"},
    ]

    response = client.post(f"{API}/raffle-items/bulk", json=rows, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["detail"]["inserted_count"] == 0
    assert client.get(f"{API}/raffle-items").json() == []


def test_full_raffle_round(client, admin_headers, store):
    for full_name, email in (
        ("Ana Lopez", "ana@example.com"),
        ("Bruno Ruiz", "bruno@example.com"),
        ("Carla Diaz", "carla@example.com"),
    ):
        add_registration(store, full_name, email)
    add_item(store, "P1", name="Teddy bear", prize_type="minor")
    add_item(store, "P2", name="Holiday trip", prize_type="grand")

    state = client.get(f"{API}/raffle/round", headers=admin_headers).json()
    assert state["round"] == 1
    assert state["undrafted_count"] == 3

    drafted = client.post(
        f"{API}/raffle/round/draft", json={"count": 2}, headers=admin_headers
    ).json()
    assert drafted["state"] == "drafted"
    first, second = [person["registration_id"] for person in drafted["drafted"]]

    client.put(
        f"{API}/raffle/round/assignments",
        json={"registration_id": first, "prize_id": "P1"},
        headers=admin_headers,
    )
    client.put(
        f"{API}/raffle/round/assignments",
        json={"registration_id": second, "prize_id": "P2"},
        headers=admin_headers,
    )
    prizes = client.get(f"{API}/raffle/round/prizes", headers=admin_headers).json()
    assert prizes == []

    confirmed = client.post(f"{API}/raffle/round/confirm", headers=admin_headers)
    assert confirmed.status_code == 200
    body = confirmed.json()
    assert body["round"] == 1
    assert body["next_round"] == 2
    assert len(body["winners"]) == 2

    state = client.get(f"{API}/raffle/round", headers=admin_headers).json()
    assert state == {
        "round": 2,
        "state": "idle",
        "total_registrations": 3,
        "undrafted_count": 1,
        "drafted": [],
    }

    page = client.get(f"{API}/winners", headers=admin_headers).json()
    assert page["total"] == 2
    assert {winner["round"] for winner in page["winners"]} == {1}

    participants = client.get(f"{API}/participants").json()
    assert [person["full_name"] for person in participants] == [
        "Ana Lopez",
        "Bruno Ruiz",
        "Carla Diaz",
    ]
    assert sum(1 for person in participants if person["prize_name"]) == 2
    assert all("email" not in person for person in participants)


def test_draft_too_many_is_rejected(client, admin_headers, store):
    add_registration(store, "Ana Lopez", "ana@example.com")

    response = client.post(f"{API}/raffle/round/draft", json={"count": 2}, headers=admin_headers)

    assert response.status_code == 400
    state = client.get(f"{API}/raffle/round", headers=admin_headers).json()
    assert state["state"] == "idle"


def test_registrations_listing_for_admins(client, admin_headers, store):
    add_registration(store, "Ana Lopez", "ana@example.com")
    add_registration(store, "Bruno Ruiz", "bruno@example.com")

    response = client.get(
        f"{API}/registrations",
        params={"search": "ana", "sort": "full_name", "direction": "asc"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert [reg["email"] for reg in response.json()["registrations"]] == ["ana@example.com"]


def test_denied_write_reports_permission_context():
    locked = MemoryDocumentStore(denied_collections=["registrations"])
    app.dependency_overrides[get_store] = lambda: locked
    try:
        response = TestClient(app).post(
            f"{API}/registrations", json={"full_name": "Ana Lopez", "email": "ana@example.com"}
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403
    context = response.json()["detail"]["context"]
    assert context["path"] == "registrations/ana@example.com"
    assert context["operation"] == "create"


def test_padded_one_letter_name_is_rejected(client, store):
    response = client.post(
        f"{API}/registrations", json={"full_name": "  a ", "email": "x@example.com"}
    )

    assert response.status_code == 422
    assert store.list("registrations") == []


def test_confirmation_is_queued_only_for_new_registrations(client, monkeypatch):
    sent = []
    monkeypatch.setattr(
        registration_routes,
        "send_registration_confirmation",
        lambda full_name, email: sent.append((full_name, email)),
    )
    payload = {"full_name": "Ana Lopez", "email": "Ana@Example.com"}

    client.post(f"{API}/registrations", json=payload)
    client.post(f"{API}/registrations", json=payload)
    client.post(
        f"{API}/registrations/form",
        data={"full_name": "Ana Lopez", "email": "ana@example.com"},
        follow_redirects=False,
    )

    assert [name for name, _ in sent] == ["Ana Lopez"]
    assert sent[0][1].lower() == "ana@example.com"


def test_csv_errors_use_file_line_numbers(client, admin_headers):
    csv_text = "id,name,description,prizeType\n\nP1,Teddy bear,Soft toy,huge\n"

    response = client.post(
        f"{API}/raffle-items/bulk/csv",
        files={"file": ("items.csv", csv_text, "text/csv")},
        headers=admin_headers,
    )

    assert response.status_code == 422
    (message,) = response.json()["detail"]["errors"]
    assert message.startswith("Row 3: prize_type:")
