# tests/conftest.py
from __future__ import annotations

import base64
import json
import os
from collections.abc import Callable, Generator, Iterator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite://")

from upsuider.api.v1.dependencies import get_services
from upsuider.core.settings import Settings
from upsuider.db.session import Base, build_engine, create_tables
from upsuider.db.session import get_db as app_get_session
from upsuider.main import app as fastapi_app
from upsuider.services.chain import SuiRpcClient
from upsuider.services.crypto import CryptoService
from upsuider.services.registry import ServiceContainer

TEST_DB_URL = "sqlite://"
EVENTSUB_SECRET = "s3cr3t"
FULLNODE_URL = "http://fullnode.test"

RpcHandler = Callable[[str, list[Any]], Any]


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL)
    create_tables(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with an EventSub secret and minting disabled."""
    return Settings(
        TWITCH_EVENTSUB_SECRET=EVENTSUB_SECRET,
        REWARD_MINT_ENABLED=False,
        SUI_FULLNODE_URL=FULLNODE_URL,
    )


@pytest.fixture()
def services(test_settings: Settings) -> ServiceContainer:
    return ServiceContainer(test_settings)


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    services: ServiceContainer,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_services, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def rpc_transport(handler: RpcHandler, calls: list[str] | None = None) -> httpx.MockTransport:
    """Build a JSON-RPC mock transport routing each method to ``handler``."""

    def _respond(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if calls is not None:
            calls.append(payload["method"])
        result = handler(payload["method"], payload["params"])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

    return httpx.MockTransport(_respond)


def signature_verifies(serialized: str, transaction_bytes: bytes) -> bool:
    """Check a serialized Ed25519 signature over the intent digest of ``transaction_bytes``."""
    signature, public_key = CryptoService.parse_serialized_signature(serialized)
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(
            signature, CryptoService.intent_digest(transaction_bytes)
        )
    except InvalidSignature:
        return False
    return True


def make_rpc(handler: RpcHandler, calls: list[str] | None = None) -> SuiRpcClient:
    return SuiRpcClient(FULLNODE_URL, transport=rpc_transport(handler, calls))


def _b64url(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def make_identity_token(**claims: Any) -> str:
    """Build an unsigned JWT-shaped identity token carrying ``claims``."""
    header = {"alg": "RS256", "typ": "JWT", "kid": "test"}
    return f"{_b64url(header)}.{_b64url(claims)}.c2lnbmF0dXJl"


FAKE_PROOF: dict[str, Any] = {
    "proofPoints": {
        "a": ["1", "2", "1"],
        "b": [["3", "4"], ["5", "6"], ["1", "0"]],
        "c": ["7", "8", "1"],
    },
    "issBase64Details": {"value": "yJpc3MiOiJodHRwczovL2lkLnR3aXRjaC50diIsI", "indexMod4": 1},
    "headerBase64": "eyJhbGciOiJSUzI1NiJ9",
}


TWITCH_ISSUER = "https://id.twitch.tv/oauth2"
REDIRECT_URI = "https://extension.chromiumapp.org/"


class FakeLauncher:
    """Answers the authorization request with a token bound to its nonce."""

    redirect_uri = REDIRECT_URI

    def __init__(self, claims=None, echo_nonce=True):
        self.claims = claims if claims is not None else {"sub": "u1", "aud": "a1", "iss": TWITCH_ISSUER}
        self.echo_nonce = echo_nonce
        self.requests = []

    async def launch(self, url, *, interactive):
        params = {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}
        self.requests.append(params)
        claims = dict(self.claims)
        if self.echo_nonce:
            claims["nonce"] = params["nonce"]
        token = make_identity_token(**claims)
        return f"{REDIRECT_URI}#" + urlencode({"state": params["state"], "id_token": token})


class Chain:
    """Scripted full node: fixed epoch, records executed transactions."""

    def __init__(self, epoch=10):
        self.epoch = epoch
        self.executed = []

    def __call__(self, method, params):
        if method == "suix_getLatestSuiSystemState":
            return {"epoch": str(self.epoch)}
        if method == "sui_executeTransactionBlock":
            self.executed.append(params)
            return {"digest": "TX", "effects": {"status": {"status": "success"}}, "events": []}
        raise AssertionError(f"unexpected RPC {method}")


def prover_transport(captured, status=200):
    def respond(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        if status != 200:
            return httpx.Response(status, text="proof rejected")
        return httpx.Response(200, json=FAKE_PROOF)

    return httpx.MockTransport(respond)
