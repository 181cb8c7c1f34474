# tests/wallet/test_wallet_config.py
"""Tests for session configuration and account storage."""

import pytest

from upsuider.core.errors import ConfigurationError
from upsuider.services.crypto import Ed25519Keypair
from upsuider.wallet.accounts import Account, AccountStore
from upsuider.wallet.config import ZkLoginConfig, merge_config


class TestConfig:
    def test_defaults(self):
        config = merge_config()
        assert config.network == "devnet"
        assert config.prover_url == "https://prover-dev.mystenlabs.com/v1"
        assert config.salt_service == "local"
        assert config.max_epoch_offset == 2
        assert config.scope("twitch") == "openid user:read:email"

    def test_missing_client_id(self):
        with pytest.raises(ConfigurationError):
            merge_config().client_id("twitch")

    def test_merge_keeps_other_provider_entries(self):
        base = merge_config(override={"clientIds": {"twitch": "abc"}, "network": "testnet"})
        updated = merge_config(base, {"scopes": {"twitch": "openid"}, "max_epoch_offset": 5})

        assert updated.client_id("twitch") == "abc"
        assert updated.scope("twitch") == "openid"
        assert updated.network == "testnet"
        assert updated.max_epoch_offset == 5

    def test_invalid_network_is_rejected(self):
        with pytest.raises(ValueError):
            merge_config(override={"network": "moonnet"})

    def test_fullnode_url_follows_network(self):
        assert ZkLoginConfig(network="testnet").fullnode_url == "https://fullnode.testnet.sui.io:443"


def make_account(address: str, subject: str = "u1") -> Account:
    return Account(
        provider="twitch",
        address=address,
        salt="42",
        subject=subject,
        audience="a1",
        issuer="https://id.twitch.tv/oauth2",
        max_epoch=10,
        randomness="7",
        zk_proof={},
        ephemeral_keypair=Ed25519Keypair.generate(),
    )


class TestAccountStore:
    def test_newest_first_and_same_address_evicted(self):
        store = AccountStore()
        first = make_account("0x1")
        store.add(first)
        store.add(make_account("0x2"))
        replacement = make_account("0x1")
        store.add(replacement)

        assert [acct.address for acct in store.all()] == ["0x1", "0x2"]
        assert store.get("0x1") is replacement

    def test_remove_and_clear_notify_observers(self):
        store = AccountStore()
        snapshots = []
        store.subscribe(lambda accounts: snapshots.append([a.address for a in accounts]))

        store.add(make_account("0x1"))
        store.add(make_account("0x2"))
        assert store.remove("0x1") is True
        assert store.remove("0x1") is False
        store.clear()

        assert snapshots == [["0x1"], ["0x2", "0x1"], ["0x2"], []]
        assert len(store) == 0

    def test_key_material_not_exposed(self):
        account = make_account("0x1")
        view = account.public_view()
        private_hex = account.ephemeral_keypair.private_key_hex

        assert private_hex not in repr(account)
        assert "42" not in repr(account)
        assert private_hex not in str(view)
        assert set(view) == {"provider", "address", "sub", "aud", "iss", "maxEpoch"}
