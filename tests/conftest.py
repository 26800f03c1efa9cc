import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_store
from app.db.store import MemoryDocumentStore
from app.main import app
from app.models.schemas import RaffleItem, RegistrationCreate
from app.services import raffle_items, registrations
from app.services.raffle_rounds import rounds

API = "/okeraffle"


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture(autouse=True)
def clear_rounds():
    rounds.clear()
    yield
    rounds.clear()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    credentials = {"email": "admin@example.com", "password": "supersecret"}
    client.post(f"{API}/auth/register", json={"name": "Admin", **credentials})
    response = client.post(f"{API}/auth/login", json=credentials)
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def add_registration(store, full_name, email):
    return registrations.register(store, RegistrationCreate(full_name=full_name, email=email))


def add_item(store, item_id, name="Prize item", prize_type="minor"):
    return raffle_items.create_item(
        store,
        RaffleItem(id=item_id, name=name, description=f"{name} description", prize_type=prize_type),
    )
