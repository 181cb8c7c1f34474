"""Failure taxonomy shared by the backend and the session-side wallet.

Every error carries a stable ``kind`` so callers across the session boundary can
branch on it without parsing messages. Messages must never embed private key
material or full identity tokens.
"""

from __future__ import annotations

from typing import Any


class UpsuiderError(RuntimeError):
    """Base class for all Upsuider failures."""

    kind: str = "internal"

    def to_dict(self) -> dict[str, Any]:
        """Return a structured, log-safe description of the failure."""
        return {"kind": self.kind, "message": str(self)}


class ConfigurationError(UpsuiderError):
    """A required client id, secret or key is missing or unusable."""

    kind = "configuration"


class AuthenticationFlowError(UpsuiderError):
    """The authorization redirect produced an unusable or untrusted response."""

    kind = "authentication_flow"

    def __init__(self, message: str, *, reason: str = "flow_failed") -> None:
        super().__init__(message)
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class FlowTimeoutError(UpsuiderError):
    """A suspension point gave up waiting (redirect, epoch query, prover or RPC)."""

    kind = "timeout"


class ProverError(UpsuiderError):
    """The external proof service answered with a non-success status."""

    kind = "prover"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Prover request failed ({status_code})")
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status_code
        return data


class ChainExecutionError(UpsuiderError):
    """The Sui full node rejected a call or could not be reached."""

    kind = "chain_execution"


class SigningError(UpsuiderError):
    """A transaction could not be signed with the bound account."""

    kind = "signing"


class ExpiredAuthorizationError(SigningError):
    """The chain epoch moved past the account's ``max_epoch``."""

    kind = "expired_authorization"

    def __init__(self, current_epoch: int, max_epoch: int) -> None:
        super().__init__(
            f"Ephemeral key expired: current epoch {current_epoch} exceeds max epoch {max_epoch}"
        )
        self.current_epoch = current_epoch
        self.max_epoch = max_epoch


class SaltInvalidError(UpsuiderError):
    """A stored salt is outside the BN254 field and needs operator attention."""

    kind = "salt_invalid"

    def __init__(self, subject: str) -> None:
        super().__init__("Stored salt is outside the BN254 field range")
        self.subject = subject


class WebhookError(UpsuiderError):
    """Terminal rejection of an inbound EventSub notification."""

    kind = "webhook"
    http_status: int = 400
    error_code: str = "invalid_request"


class MissingHeadersError(WebhookError):
    """One of the four required EventSub headers is absent."""

    kind = "missing_headers"
    http_status = 400
    error_code = "missing_headers"


class InvalidSignatureError(WebhookError):
    """The HMAC over the notification does not match the provided signature."""

    kind = "invalid_signature"
    http_status = 403
    error_code = "invalid_signature"


class InvalidPayloadError(WebhookError):
    """The notification body is not valid JSON or misses required fields."""

    kind = "invalid_payload"
    http_status = 400
    error_code = "invalid_json"
