# tests/conftest.py

from __future__ import annotations

import pytest

from plantcare import create_app
from plantcare.services import supabase_client
from plantcare.utils.cache import clear_all_calendar_cache

from .fakes import FakeSupabase

USER_ID = "0b6f1c2e-6a1d-4c55-9f0e-3d1a2b3c4d5e"
OTHER_USER_ID = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
PLANT_ID = "550e8400-e29b-41d4-a716-446655440000"
SECOND_PLANT_ID = "6fa459ea-ee8a-4ca4-894e-db77e160355e"
OTHER_PLANT_ID = "16fd2706-8baf-433b-82eb-8c7fada847da"
TOKEN = "token-grower"
OTHER_TOKEN = "token-neighbour"


@pytest.fixture()
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeSupabase:
    """
    In-memory store wired in place of both Supabase clients.

    Two users: USER_ID owns PLANT_ID and SECOND_PLANT_ID, OTHER_USER_ID owns
    OTHER_PLANT_ID.
    """
    db = FakeSupabase()
    db.add_plant(PLANT_ID, USER_ID, "Monstera", image_url="https://img.example/monstera.jpg")
    db.add_plant(SECOND_PLANT_ID, USER_ID, "Pothos")
    db.add_plant(OTHER_PLANT_ID, OTHER_USER_ID, "Fern")
    db.add_user(TOKEN, USER_ID)
    db.add_user(OTHER_TOKEN, OTHER_USER_ID, email="neighbour@example.com")

    monkeypatch.setattr(supabase_client, "_supabase_admin", db)
    monkeypatch.setattr(supabase_client, "_supabase_client", db)
    clear_all_calendar_cache()
    yield db
    clear_all_calendar_cache()


@pytest.fixture()
def app(fake_db: FakeSupabase, monkeypatch: pytest.MonkeyPatch):
    app = create_app("plantcare.config.TestConfig")
    # init_supabase() found no credentials and reset the clients; put the fake back
    monkeypatch.setattr(supabase_client, "_supabase_admin", fake_db)
    monkeypatch.setattr(supabase_client, "_supabase_client", fake_db)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {
        "Authorization": f"Bearer {TOKEN}",
        "X-Requested-With": "XMLHttpRequest",
    }
