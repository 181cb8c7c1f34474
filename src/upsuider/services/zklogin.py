# src/upsuider/services/zklogin.py
"""zkLogin protocol primitives.

These functions must match the Sui zkLogin reference exactly: the prover checks
the nonce embedded in the identity token, and the chain recomputes the address
from the address seed carried by every signature. Any drift produces proofs or
signatures that are well-formed locally and rejected remotely.
"""

from __future__ import annotations

import base64
import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from jose import jwt
from jose.exceptions import JWTError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from upsuider.core.errors import AuthenticationFlowError
from upsuider.services.crypto import ED25519_FLAG, ZKLOGIN_FLAG, CryptoService, Ed25519Keypair
from upsuider.utils.bcs import BcsWriter
from upsuider.utils.hash import blake2b256
from upsuider.utils.poseidon import poseidon_hash

MAX_KEY_CLAIM_NAME_LENGTH = 32
MAX_KEY_CLAIM_VALUE_LENGTH = 115
MAX_AUD_VALUE_LENGTH = 145
PACK_WIDTH = 248
NONCE_LENGTH = 27
NONCE_BYTES = 20
RANDOMNESS_BYTES = 16
ADDRESS_SEED_BYTES = 32
KEY_CLAIM_NAME = "sub"
GOOGLE_ISSUER = "accounts.google.com"


class IdentityClaims(BaseModel):
    """Claims the protocol needs from an identity token, decoded without verification."""

    model_config = ConfigDict(extra="ignore")

    sub: str = Field(..., min_length=1)
    aud: str = Field(..., min_length=1)
    iss: str = Field(..., min_length=1)
    nonce: str | None = None

    @field_validator("aud", mode="before")
    @classmethod
    def _first_audience(cls, value: Any) -> Any:
        if isinstance(value, list):
            return value[0] if value else ""
        return value

    @field_validator("sub", "aud")
    @classmethod
    def _hashable_claim(cls, value: str, info: ValidationInfo) -> str:
        limit = MAX_KEY_CLAIM_VALUE_LENGTH if info.field_name == "sub" else MAX_AUD_VALUE_LENGTH
        if not value.isascii() or len(value) > limit:
            raise ValueError(f"must be ASCII of at most {limit} characters")
        return value

    @field_validator("iss")
    @classmethod
    def _encodable_issuer(cls, value: str) -> str:
        if len(value.encode("utf-8")) > 0xFF:
            raise ValueError("must be at most 255 bytes")
        return value


def decode_identity_claims(id_token: str) -> IdentityClaims:
    """Decode and validate the claims of an identity token.

    The token signature is NOT checked here: trust in the token is established
    by the prover and by the chain's verification of the proof.

    Raises:
        AuthenticationFlowError: If the token is malformed, lacks sub/aud/iss, or
            carries claims that do not fit the address circuit.
    """
    try:
        raw_claims = jwt.get_unverified_claims(id_token)
    except JWTError as err:
        raise AuthenticationFlowError(
            "Identity token is not a well-formed JWT",
            reason="malformed_token",
        ) from err
    try:
        return IdentityClaims.model_validate(raw_claims)
    except ValidationError as err:
        malformed = sorted(
            {str(error["loc"][0]) for error in err.errors() if error["type"] == "value_error"}
        )
        if malformed:
            raise AuthenticationFlowError(
                f"Identity token claims cannot be bound to an address: {', '.join(malformed)}",
                reason="token_shape",
            ) from err
        missing = sorted({str(error["loc"][0]) for error in err.errors() if error["loc"]})
        raise AuthenticationFlowError(
            f"Identity token missing required claims: {', '.join(missing)}",
            reason="missing_claims",
        ) from err


def _bytes_to_int(data: Sequence[int]) -> int:
    return int.from_bytes(bytes(data), "big") if data else 0


def _padded_big_endian(value: int, width: int) -> bytes:
    """Return the low ``width`` bytes of ``value`` big-endian, left-padded with zeros."""
    return (value % (1 << (8 * width))).to_bytes(width, "big")


def hash_ascii_str_to_field(value: str, max_size: int) -> int:
    """Map a claim string to a field element.

    The string is NUL-padded to ``max_size`` characters, packed into 31-byte
    big-endian chunks and Poseidon-hashed.
    """
    if len(value) > max_size:
        raise ValueError(f"String {value} is longer than {max_size} chars")
    padded = [ord(char) for char in value.ljust(max_size, "\0")]
    chunk_size = PACK_WIDTH // 8
    packed = [
        _bytes_to_int(padded[start : start + chunk_size])
        for start in range(0, len(padded), chunk_size)
    ]
    return poseidon_hash(packed)


def gen_address_seed(
    salt: int | str,
    name: str,
    value: str,
    aud: str,
    max_name_length: int = MAX_KEY_CLAIM_NAME_LENGTH,
    max_value_length: int = MAX_KEY_CLAIM_VALUE_LENGTH,
    max_aud_length: int = MAX_AUD_VALUE_LENGTH,
) -> int:
    """Return the address seed binding a salt to one identity claim and audience."""
    return poseidon_hash(
        [
            hash_ascii_str_to_field(name, max_name_length),
            hash_ascii_str_to_field(value, max_value_length),
            hash_ascii_str_to_field(aud, max_aud_length),
            poseidon_hash([int(salt)]),
        ]
    )


def compute_address_from_seed(address_seed: int, issuer: str) -> str:
    """Return the zkLogin Sui address for an address seed and issuer."""
    if issuer == GOOGLE_ISSUER:
        issuer = f"https://{GOOGLE_ISSUER}"
    issuer_bytes = issuer.encode("utf-8")
    if len(issuer_bytes) > 0xFF:
        raise ValueError("Issuer is too long to encode")
    payload = (
        bytes([ZKLOGIN_FLAG, len(issuer_bytes)])
        + issuer_bytes
        + _padded_big_endian(address_seed, ADDRESS_SEED_BYTES)
    )
    return "0x" + blake2b256(payload).hex()


def derive_address(issuer: str, audience: str, subject: str, salt: int | str) -> str:
    """Return the address controlled by ``subject`` at ``audience`` under ``salt``."""
    seed = gen_address_seed(salt, KEY_CLAIM_NAME, subject, audience)
    return compute_address_from_seed(seed, issuer)


def generate_randomness() -> str:
    """Return 16 random bytes as a decimal string."""
    return str(int.from_bytes(secrets.token_bytes(RANDOMNESS_BYTES), "big"))


def generate_nonce(public_key: Ed25519Keypair | bytes, max_epoch: int, randomness: int | str) -> str:
    """Bind an ephemeral public key and epoch window into an OAuth nonce.

    Args:
        public_key: Ephemeral keypair, or its flagged Sui public key bytes.
        max_epoch: Last epoch in which the ephemeral key may sign.
        randomness: Blinding value, shared with the prover request.

    Returns:
        The 27-character base64url nonce.
    """
    sui_bytes = public_key.sui_public_key_bytes if isinstance(public_key, Ed25519Keypair) else public_key
    public_key_int = int.from_bytes(sui_bytes, "big")
    digest = poseidon_hash(
        [
            public_key_int >> 128,
            public_key_int % (1 << 128),
            int(max_epoch),
            int(randomness),
        ]
    )
    nonce = base64.urlsafe_b64encode(_padded_big_endian(digest, NONCE_BYTES)).decode().rstrip("=")
    if len(nonce) != NONCE_LENGTH:
        raise ValueError(f"Length of nonce {nonce} ({len(nonce)}) is not equal to {NONCE_LENGTH}")
    return nonce


def extended_ephemeral_public_key(public_key: Ed25519Keypair) -> str:
    """Return the flagged public key in the base64 form the prover accepts."""
    return base64.b64encode(public_key.sui_public_key_bytes).decode()


@dataclass(frozen=True)
class ZkLoginSignatureInputs:
    """Prover output plus the address seed, as carried inside a zkLogin signature."""

    proof_points: Mapping[str, Any]
    iss_base64_details: Mapping[str, Any]
    header_base64: str
    address_seed: str

    @classmethod
    def from_prover(cls, proof: Mapping[str, Any], address_seed: int | str) -> ZkLoginSignatureInputs:
        """Combine opaque prover material with the signing-time address seed."""
        try:
            return cls(
                proof_points=proof["proofPoints"],
                iss_base64_details=proof["issBase64Details"],
                header_base64=str(proof["headerBase64"]),
                address_seed=str(address_seed),
            )
        except KeyError as err:
            raise ValueError(f"Prover output missing field {err.args[0]!r}") from err


def _write_strings(writer: BcsWriter, values: Sequence[Any]) -> None:
    writer.write_vector(values, lambda w, item: w.write_string(str(item)))


def zklogin_signature(
    inputs: ZkLoginSignatureInputs,
    max_epoch: int,
    user_signature: bytes | str,
) -> str:
    """Serialize a zkLogin compound signature (flag ``0x05`` + BCS) as base64.

    Raises:
        ValueError: If ``user_signature`` is not a serialized Ed25519 signature.
    """
    if isinstance(user_signature, bytes):
        user_signature = base64.b64encode(user_signature).decode()
    signature, public_key = CryptoService.parse_serialized_signature(user_signature)
    ephemeral_signature = bytes([ED25519_FLAG]) + signature + public_key

    points = inputs.proof_points
    writer = BcsWriter()
    _write_strings(writer, points["a"])
    writer.write_vector(points["b"], _write_strings)
    _write_strings(writer, points["c"])
    writer.write_string(str(inputs.iss_base64_details["value"]))
    writer.write_u8(int(inputs.iss_base64_details["indexMod4"]))
    writer.write_string(inputs.header_base64)
    writer.write_string(inputs.address_seed)
    writer.write_u64(int(max_epoch))
    writer.write_bytes(ephemeral_signature)
    return base64.b64encode(bytes([ZKLOGIN_FLAG]) + writer.to_bytes()).decode()


def subject_from_token(id_token: str, *, audience: str | None = None) -> str:
    """Return the ``sub`` claim of an identity token without verifying it.

    When ``audience`` is given the token's ``aud`` claim must name it.

    Raises:
        AuthenticationFlowError: If the token is malformed, has no subject, or
            was issued to another client.
    """
    try:
        raw_claims = jwt.get_unverified_claims(id_token)
    except JWTError as err:
        raise AuthenticationFlowError(
            "Identity token is not a well-formed JWT",
            reason="malformed_token",
        ) from err
    subject = raw_claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthenticationFlowError("Identity token has no subject", reason="missing_claims")
    if audience is not None:
        claimed = raw_claims.get("aud")
        audiences = claimed if isinstance(claimed, list) else [claimed]
        if audience not in audiences:
            raise AuthenticationFlowError(
                "Identity token was issued to another client",
                reason="audience_mismatch",
            )
    return subject
