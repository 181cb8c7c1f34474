# tests/services/test_crypto.py
"""Tests for Ed25519 keys and Sui intent signing."""

import base64

import pytest

from upsuider.services.crypto import CryptoService, Ed25519Keypair
from upsuider.utils.hash import blake2b256
from tests.conftest import signature_verifies

# RFC 8032, test 1
RFC_SECRET = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
RFC_PUBLIC = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"


def test_blake2b256_known_vectors():
    assert blake2b256(b"").hex() == "0e5751c026e543b2e8ab2eb06099daa1d1e5df47778f7787faab45cdf12fe3a8"
    assert blake2b256(b"abc").hex() == "bddd813c634239723171ef3fee98579b94964e3bb1cb3e427262c8c068d52319"


def test_keypair_from_rfc_seed():
    keypair = Ed25519Keypair.from_private_hex(RFC_SECRET)
    assert keypair.public_key.hex() == RFC_PUBLIC
    assert keypair.sui_public_key_bytes[0] == 0
    assert keypair.sui_address() == (
        "0x304af458e90e97c841685b8cbbc59b909f3e2cf150df590ada4c81452c29737d"
    )


def test_private_key_hidden_from_repr():
    keypair = Ed25519Keypair.from_private_hex(RFC_SECRET)
    assert RFC_SECRET not in repr(keypair)
    assert "private_key" not in repr(keypair)


def test_intent_digest_prefixes_transaction_intent():
    digest = CryptoService.intent_digest(b"hello")
    assert digest.hex() == "721668b482762a913a793cc6c50fd5354c610c633e87e94975aa0d27ba72fef1"


def test_sign_transaction_serializes_flag_signature_and_key():
    keypair = Ed25519Keypair.generate()
    serialized = CryptoService.sign_transaction(keypair, b"tx-bytes")
    raw = base64.b64decode(serialized)

    assert len(raw) == 97
    assert raw[0] == 0
    assert raw[65:] == keypair.public_key
    assert signature_verifies(serialized, b"tx-bytes")
    assert not signature_verifies(serialized, b"other")


def test_parse_serialized_signature_rejects_other_schemes():
    bogus = base64.b64encode(bytes([5]) + bytes(96)).decode()
    with pytest.raises(ValueError):
        CryptoService.parse_serialized_signature(bogus)


class TestDecodeSecretKey:
    def test_hex_seed(self):
        assert CryptoService.decode_secret_key(RFC_SECRET).public_key.hex() == RFC_PUBLIC

    def test_prefixed_hex_seed(self):
        assert CryptoService.decode_secret_key("0x" + RFC_SECRET).public_key.hex() == RFC_PUBLIC

    def test_keystore_base64_with_flag(self):
        encoded = base64.b64encode(bytes([0]) + bytes.fromhex(RFC_SECRET)).decode()
        assert CryptoService.decode_secret_key(encoded).public_key.hex() == RFC_PUBLIC

    def test_bare_base64_seed(self):
        encoded = base64.b64encode(bytes.fromhex(RFC_SECRET)).decode()
        assert CryptoService.decode_secret_key(encoded).public_key.hex() == RFC_PUBLIC

    def test_rejects_secp256k1_flag(self):
        encoded = base64.b64encode(bytes([1]) + bytes.fromhex(RFC_SECRET)).decode()
        with pytest.raises(ValueError):
            CryptoService.decode_secret_key(encoded)

    @pytest.mark.parametrize("encoded", ["", "not a key!", base64.b64encode(b"short").decode()])
    def test_rejects_garbage(self, encoded):
        with pytest.raises(ValueError):
            CryptoService.decode_secret_key(encoded)
