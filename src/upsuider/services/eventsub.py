# src/upsuider/services/eventsub.py
"""Twitch EventSub webhook authentication and dispatch.

Every inbound notification moves through the same pipeline::

    headers -> HMAC signature -> replay check -> JSON body -> dispatch

Only a notification that survives every step may cause a side effect. The raw
body bytes are used verbatim for the signature; they are never re-serialized.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from upsuider.core.errors import (
    ConfigurationError,
    InvalidPayloadError,
    InvalidSignatureError,
    MissingHeadersError,
)
from upsuider.core.security import constant_time_equals
from upsuider.services.replay import ReplayCache, ReplayStatus

logger = logging.getLogger(__name__)

HEADER_MESSAGE_ID = "twitch-eventsub-message-id"
HEADER_TIMESTAMP = "twitch-eventsub-message-timestamp"
HEADER_SIGNATURE = "twitch-eventsub-message-signature"
HEADER_MESSAGE_TYPE = "twitch-eventsub-message-type"

MESSAGE_TYPE_VERIFICATION = "webhook_callback_verification"
MESSAGE_TYPE_NOTIFICATION = "notification"
REWARD_REDEMPTION_SUBSCRIPTION = "channel.channel_points_custom_reward_redemption.add"
SIGNATURE_PREFIX = "sha256="

HTTP_OK = 200
HTTP_NO_CONTENT = 204


@dataclass(frozen=True)
class EventSubHeaders:
    """The four headers Twitch attaches to every webhook delivery."""

    message_id: str
    timestamp: str
    signature: str
    message_type: str


def _header_value(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if not value:
        return None
    return str(value)


def extract_headers(headers: Mapping[str, Any]) -> EventSubHeaders:
    """Pull the EventSub headers out of a request, case-insensitively.

    Raises:
        MissingHeadersError: If any of the four headers is absent or empty.
    """
    lowered = {str(key).lower(): value for key, value in headers.items()}
    values = {
        name: _header_value(lowered.get(name))
        for name in (HEADER_MESSAGE_ID, HEADER_TIMESTAMP, HEADER_SIGNATURE, HEADER_MESSAGE_TYPE)
    }
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise MissingHeadersError("Missing required Twitch EventSub headers")
    return EventSubHeaders(
        message_id=values[HEADER_MESSAGE_ID] or "",
        timestamp=values[HEADER_TIMESTAMP] or "",
        signature=values[HEADER_SIGNATURE] or "",
        message_type=values[HEADER_MESSAGE_TYPE] or "",
    )


def compute_signature(secret: str, message_id: str, timestamp: str, raw_body: bytes) -> str:
    """Return ``"sha256=" + hex(HMAC-SHA256(secret, id || timestamp || body))``."""
    message = message_id.encode("utf-8") + timestamp.encode("utf-8") + raw_body
    mac = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + mac


def verify_signature(secret: str, headers: EventSubHeaders, raw_body: bytes) -> bool:
    """Check the delivery signature in constant time."""
    expected = compute_signature(secret, headers.message_id, headers.timestamp, raw_body)
    return constant_time_equals(headers.signature.encode("utf-8"), expected.encode("utf-8"))


class _Subscription(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["channel.channel_points_custom_reward_redemption.add"]


class _Reward(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    title: str | None = None
    cost: int | None = None


class _RedemptionEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    user_id: str
    user_login: str | None = None
    user_name: str | None = None
    broadcaster_user_id: str | None = None
    reward: _Reward | None = None


class RewardRedemptionNotification(BaseModel):
    """Subset of a channel points redemption notification we act on."""

    model_config = ConfigDict(extra="ignore")

    subscription: _Subscription
    event: _RedemptionEvent


class _Challenge(BaseModel):
    challenge: str


@dataclass(frozen=True)
class RedemptionEvent:
    """Parsed fields of a reward redemption handed to the notification handler."""

    message_id: str
    twitch_user_id: str
    user_login: str | None = None
    reward_id: str | None = None
    reward_title: str | None = None
    broadcaster_user_id: str | None = None


class OutcomeKind(str, Enum):
    CHALLENGE = "challenge"
    DISPATCHED = "dispatched"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class WebhookOutcome:
    """What the HTTP layer should answer for a delivery."""

    kind: OutcomeKind
    status_code: int
    body: Any = None
    media_type: str = "application/json"


@dataclass(frozen=True)
class VerifiedMessage:
    headers: EventSubHeaders
    replay: ReplayStatus = field(default=ReplayStatus.FIRST_SEEN)

    @property
    def is_duplicate(self) -> bool:
        return self.replay is ReplayStatus.DUPLICATE


NotificationHandler = Callable[[RedemptionEvent], Awaitable[WebhookOutcome]]


class WebhookAuthenticator:
    """Verifies authenticity and uniqueness of EventSub deliveries."""

    def __init__(self, secret: str, replay_cache: ReplayCache | None = None) -> None:
        if not secret:
            raise ConfigurationError("TWITCH_EVENTSUB_SECRET is not configured")
        self._secret = secret
        self.replay_cache = replay_cache or ReplayCache()

    def verify(
        self,
        headers: Mapping[str, Any],
        raw_body: bytes,
        now: float | None = None,
    ) -> VerifiedMessage:
        """Run header validation, signature verification and the replay check.

        Raises:
            MissingHeadersError: A required header is absent.
            InvalidSignatureError: The HMAC does not match.
        """
        parsed = extract_headers(headers)
        if not verify_signature(self._secret, parsed, raw_body):
            logger.warning(
                "EventSub signature verification failed for message %s", parsed.message_id
            )
            raise InvalidSignatureError("EventSub signature verification failed")
        status = self.replay_cache.register(parsed.message_id, now)
        return VerifiedMessage(headers=parsed, replay=status)

    async def process(
        self,
        headers: Mapping[str, Any],
        raw_body: bytes,
        handler: NotificationHandler,
        now: float | None = None,
    ) -> WebhookOutcome:
        """Authenticate a delivery and route it by message type.

        Raises:
            MissingHeadersError: A required header is absent.
            InvalidSignatureError: The HMAC does not match.
            InvalidPayloadError: The body is not JSON or a challenge is malformed.
        """
        verified = self.verify(headers, raw_body, now)
        message = verified.headers
        if verified.is_duplicate:
            logger.info("Duplicate EventSub message ignored: %s", message.message_id)
            return WebhookOutcome(OutcomeKind.DUPLICATE, HTTP_NO_CONTENT)

        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as err:
            logger.warning("Failed to parse EventSub payload: %s", err)
            raise InvalidPayloadError("Unable to parse EventSub payload") from err

        if message.message_type == MESSAGE_TYPE_VERIFICATION:
            try:
                challenge = _Challenge.model_validate(payload)
            except ValidationError as err:
                raise InvalidPayloadError("Invalid challenge payload") from err
            return WebhookOutcome(
                OutcomeKind.CHALLENGE,
                HTTP_OK,
                body=challenge.challenge,
                media_type="text/plain",
            )

        if message.message_type != MESSAGE_TYPE_NOTIFICATION:
            logger.info("Unhandled EventSub message type: %s", message.message_type)
            return WebhookOutcome(OutcomeKind.IGNORED, HTTP_NO_CONTENT)

        try:
            notification = RewardRedemptionNotification.model_validate(payload)
        except ValidationError as err:
            logger.warning("Unexpected EventSub notification shape: %s", err.error_count())
            return WebhookOutcome(OutcomeKind.IGNORED, HTTP_NO_CONTENT)

        event = notification.event
        return await handler(
            RedemptionEvent(
                message_id=message.message_id,
                twitch_user_id=event.user_id,
                user_login=event.user_login,
                reward_id=event.reward.id if event.reward else None,
                reward_title=event.reward.title if event.reward else None,
                broadcaster_user_id=event.broadcaster_user_id,
            )
        )
