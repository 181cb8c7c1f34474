# tests/v1/test_transactions_api.py
"""Tests for the server-funded transfer endpoint."""

import base64

import pytest

from upsuider.api.v1.dependencies import get_services
from upsuider.services.registry import ServiceContainer
from tests.conftest import make_rpc, signature_verifies

SERVER_SEED = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
SERVER_ADDRESS = "0x304af458e90e97c841685b8cbbc59b909f3e2cf150df590ada4c81452c29737d"
RECIPIENT = "0x" + "ab" * 32


class Node:
    """Scripted full node for coin listing, payment building and execution."""

    def __init__(self, coins=("0xc1", "0xc2")):
        self.coins = list(coins)
        self.calls = {}

    def __call__(self, method, params):
        self.calls[method] = params
        if method == "suix_getCoins":
            return {"data": [{"coinObjectId": coin} for coin in self.coins], "hasNextPage": False}
        if method == "unsafe_paySui":
            return {"txBytes": base64.b64encode(b"pay-tx").decode()}
        if method == "sui_executeTransactionBlock":
            return {
                "digest": "D1",
                "confirmedLocalExecution": True,
                "effects": {"status": {"status": "success"}},
                "events": [],
            }
        raise AssertionError(f"unexpected RPC {method}")


@pytest.fixture()
def node():
    return Node()


@pytest.fixture()
def use_container(app, test_settings):
    def _install(node, **overrides):
        settings = test_settings.model_copy(
            update={"server_transfers_enabled": True, "sui_keypair": SERVER_SEED, **overrides}
        )
        app.dependency_overrides[get_services] = lambda: ServiceContainer(
            settings, rpc=make_rpc(node)
        )

    yield _install
    app.dependency_overrides.pop(get_services, None)


def test_transfer_pays_recipient_from_server_coins(client, node, use_container):
    use_container(node)

    response = client.post(
        "/api/v1/transactions/transfer", json={"recipient": RECIPIENT, "amount": "1000"}
    )

    assert response.status_code == 200
    assert response.json() == {
        "digest": "D1",
        "confirmedLocalExecution": True,
        "effects": {"status": {"status": "success"}},
        "events": [],
    }
    assert node.calls["suix_getCoins"][0] == SERVER_ADDRESS
    assert node.calls["unsafe_paySui"] == [
        SERVER_ADDRESS,
        ["0xc1", "0xc2"],
        [RECIPIENT],
        ["1000"],
        "20000000",
    ]
    tx_b64, signatures, _options, request_type = node.calls["sui_executeTransactionBlock"]
    assert base64.b64decode(tx_b64) == b"pay-tx"
    assert signature_verifies(signatures[0], b"pay-tx")
    assert request_type == "WaitForLocalExecution"


def test_transfer_disabled_by_default(client, node, use_container):
    use_container(node, server_transfers_enabled=False)

    response = client.post("/api/v1/transactions/transfer", json={"recipient": RECIPIENT, "amount": 1})

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "transfers_disabled"
    assert node.calls == {}


def test_transfer_without_server_key(client, node, use_container):
    use_container(node, sui_keypair=None)

    response = client.post("/api/v1/transactions/transfer", json={"recipient": RECIPIENT, "amount": 1})

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "not_configured"


def test_transfer_without_coins(client, use_container):
    use_container(Node(coins=()))

    response = client.post("/api/v1/transactions/transfer", json={"recipient": RECIPIENT, "amount": 1})

    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "transfer_failed"


@pytest.mark.parametrize("amount", [0, -5, "ten", 2**64])
def test_transfer_rejects_bad_amounts(client, node, use_container, amount):
    use_container(node)

    response = client.post(
        "/api/v1/transactions/transfer", json={"recipient": RECIPIENT, "amount": amount}
    )

    assert response.status_code == 422
    assert node.calls == {}
