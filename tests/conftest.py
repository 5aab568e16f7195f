import os

# The module-level app must not touch a real database file during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")

import httpx
import pytest
from fastapi.testclient import TestClient

from build_orders.server import store
from build_orders.server.auth import start_session
from build_orders.server.config import Settings
from build_orders.server.main import create_app

STEAM_ID = "76561197960287930"
OTHER_STEAM_ID = "76561198000000001"


def steam_handler(calls: list, valid: bool = True, players=None):
    """Fake Steam: OpenID check_authentication plus the player summary Web API."""
    if players is None:
        players = [{
            "steamid": STEAM_ID,
            "personaname": "Hera",
            "avatarfull": "https://avatars.example/hera.jpg",
            "profileurl": f"https://steamcommunity.com/profiles/{STEAM_ID}/",
        }]

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.host == "steamcommunity.com":
            body = "ns:http://specs.openid.net/auth/2.0\nis_valid:%s\n" % ("true" if valid else "false")
            return httpx.Response(200, text=body)
        if request.url.host == "api.steampowered.com":
            return httpx.Response(200, json={"response": {"players": players}})
        return httpx.Response(404)

    return handler


def openid_params(steam_id: str = STEAM_ID) -> dict:
    claimed = f"https://steamcommunity.com/openid/id/{steam_id}"
    return {
        "openid.ns": "http://specs.openid.net/auth/2.0",
        "openid.mode": "id_res",
        "openid.op_endpoint": "https://steamcommunity.com/openid/login",
        "openid.claimed_id": claimed,
        "openid.identity": claimed,
        "openid.return_to": "http://localhost:8000/auth/callback/steam",
        "openid.response_nonce": "2026-10-18T12:00:00Zabcdef",
        "openid.assoc_handle": "1234567890",
        "openid.signed": "signed,op_endpoint,claimed_id,identity,return_to,response_nonce,assoc_handle",
        "openid.sig": "c2lnbmF0dXJl",
    }


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        public_url="http://localhost:8000",
        steam_api_key="test-key",
        app_env="test",
        log_level="WARNING",
    )


@pytest.fixture
def steam_calls():
    return []


@pytest.fixture
def app(settings, steam_calls):
    return create_app(settings, steam_transport=httpx.MockTransport(steam_handler(steam_calls)))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(app, settings):
    """Creates a signed-in user; returns (user, auth headers)."""
    def _make(steam_id: str = STEAM_ID, name: str = "Hera"):
        with app.state.session_factory() as session:
            user = store.upsert_user(session, steam_id, name, None)
            token, _ = start_session(session, settings, user)
        return user, {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def author(make_user):
    return make_user()


@pytest.fixture
def stranger(make_user):
    return make_user(OTHER_STEAM_ID, "Viper")


def step_payload(order: int = 0, **overrides) -> dict:
    step = {
        "order": order,
        "timeMinutes": 0,
        "timeSeconds": 0,
        "villagerCount": 3,
        "action": "Initial setup",
        "description": "3 villagers to sheep, build 2 houses",
        "resources": {"wood": 200, "food": 0, "gold": 0, "stone": 0},
    }
    step.update(overrides)
    return step


def build_order_payload(**overrides) -> dict:
    payload = {
        "title": "22 Pop Scouts",
        "description": "Fast scouts rush build order for Arabia",
        "civilization": "Mongols",
        "mapType": ["Arabia"],
        "isPublic": True,
        "steps": [
            step_payload(0),
            step_payload(1, timeMinutes=1, timeSeconds=30, villagerCount=6, action="Build Barracks",
                         description="Send 3 villagers to wood, build barracks",
                         resources={"wood": 175, "food": 150, "gold": 0, "stone": 0}),
        ],
    }
    payload.update(overrides)
    return payload
