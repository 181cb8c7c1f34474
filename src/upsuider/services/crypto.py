# src/upsuider/services/crypto.py
"""Ed25519 key handling and Sui intent signing."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from upsuider.utils.hash import blake2b256

ED25519_FLAG = 0x00
ZKLOGIN_FLAG = 0x05
PRIVATE_KEY_LENGTH_BYTES = 32
PUBKEY_LENGTH_BYTES = 32
SIGNATURE_LENGTH_BYTES = 64

# IntentScope::TransactionData, IntentVersion::V0, AppId::Sui
TRANSACTION_INTENT = bytes([0, 0, 0])


@dataclass(frozen=True)
class Ed25519Keypair:
    """Raw Ed25519 keypair; the private half never appears in ``repr``."""

    private_key: bytes = field(repr=False)
    public_key: bytes

    @classmethod
    def generate(cls) -> Ed25519Keypair:
        """Generate a fresh keypair."""
        private_key = Ed25519PrivateKey.generate()
        return cls._from_private(private_key)

    @classmethod
    def from_private_bytes(cls, private_key_bytes: bytes) -> Ed25519Keypair:
        """Rebuild a keypair from a 32-byte seed."""
        try:
            private_key = Ed25519PrivateKey.from_private_bytes(private_key_bytes)
        except ValueError as err:
            raise ValueError(f"Invalid private key: {err}") from err
        return cls._from_private(private_key)

    @classmethod
    def from_private_hex(cls, private_key_hex: str) -> Ed25519Keypair:
        try:
            return cls.from_private_bytes(bytes.fromhex(private_key_hex))
        except ValueError as err:
            raise ValueError(f"Invalid private key hex: {err}") from err

    @classmethod
    def _from_private(cls, private_key: Ed25519PrivateKey) -> Ed25519Keypair:
        private_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return cls(private_key=private_bytes, public_key=public_bytes)

    @property
    def private_key_hex(self) -> str:
        return self.private_key.hex()

    @property
    def sui_public_key_bytes(self) -> bytes:
        """Return ``flag || public_key`` as Sui serializes public keys."""
        return bytes([ED25519_FLAG]) + self.public_key

    def sign(self, message: bytes) -> bytes:
        """Sign raw bytes and return the 64-byte signature."""
        return Ed25519PrivateKey.from_private_bytes(self.private_key).sign(message)

    def sui_address(self) -> str:
        """Return the Sui address controlled by this key alone."""
        return "0x" + blake2b256(self.sui_public_key_bytes).hex()


class CryptoService:
    """Service handling Sui signing operations."""

    @staticmethod
    def intent_digest(transaction_bytes: bytes) -> bytes:
        """Return the digest Sui expects signers to sign for transaction data."""
        return blake2b256(TRANSACTION_INTENT + transaction_bytes)

    @staticmethod
    def serialize_signature(signature: bytes, public_key: bytes) -> str:
        """Encode ``flag || signature || public_key`` as base64."""
        if len(signature) != SIGNATURE_LENGTH_BYTES:
            raise ValueError("Ed25519 signatures must be 64 bytes")
        if len(public_key) != PUBKEY_LENGTH_BYTES:
            raise ValueError("Ed25519 public keys must be 32 bytes")
        return base64.b64encode(bytes([ED25519_FLAG]) + signature + public_key).decode()

    @staticmethod
    def parse_serialized_signature(serialized: str) -> tuple[bytes, bytes]:
        """Split a serialized Ed25519 signature into ``(signature, public_key)``."""
        raw = base64.b64decode(serialized)
        expected = 1 + SIGNATURE_LENGTH_BYTES + PUBKEY_LENGTH_BYTES
        if len(raw) != expected or raw[0] != ED25519_FLAG:
            raise ValueError("Not a serialized Ed25519 signature")
        return raw[1 : 1 + SIGNATURE_LENGTH_BYTES], raw[1 + SIGNATURE_LENGTH_BYTES :]

    @staticmethod
    def sign_transaction(keypair: Ed25519Keypair, transaction_bytes: bytes) -> str:
        """Sign transaction bytes under the transaction intent.

        Args:
            keypair: Signing keypair.
            transaction_bytes: BCS-encoded ``TransactionData``.

        Returns:
            Base64 serialized signature ready for ``sui_executeTransactionBlock``.
        """
        digest = CryptoService.intent_digest(transaction_bytes)
        return CryptoService.serialize_signature(keypair.sign(digest), keypair.public_key)

    @staticmethod
    def decode_secret_key(encoded: str) -> Ed25519Keypair:
        """Decode a configured secret key.

        Accepts a 32-byte seed as hex (optionally ``0x``-prefixed), or the Sui
        keystore form: base64 of ``flag || seed`` (or of the bare seed).
        """
        cleaned = encoded.strip()
        if not cleaned:
            raise ValueError("Secret key is empty")

        hex_candidate = cleaned[2:] if cleaned.startswith("0x") else cleaned
        if len(hex_candidate) == 2 * PRIVATE_KEY_LENGTH_BYTES:
            try:
                return Ed25519Keypair.from_private_bytes(bytes.fromhex(hex_candidate))
            except ValueError:
                pass

        try:
            raw = base64.b64decode(cleaned, validate=True)
        except (binascii.Error, ValueError) as err:
            raise ValueError(f"Invalid secret key encoding: {err}") from err
        if len(raw) == PRIVATE_KEY_LENGTH_BYTES + 1:
            if raw[0] != ED25519_FLAG:
                raise ValueError(f"Unsupported key scheme flag: {raw[0]}")
            raw = raw[1:]
        if len(raw) != PRIVATE_KEY_LENGTH_BYTES:
            raise ValueError("Ed25519 secret keys must be 32 bytes")
        return Ed25519Keypair.from_private_bytes(raw)
