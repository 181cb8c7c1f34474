# tests/services/test_eventsub.py
"""Tests for EventSub authentication and replay protection."""

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from upsuider.core.errors import (
    ConfigurationError,
    InvalidPayloadError,
    InvalidSignatureError,
    MissingHeadersError,
)
from upsuider.services.eventsub import (
    OutcomeKind,
    WebhookAuthenticator,
    WebhookOutcome,
    compute_signature,
    extract_headers,
)
from upsuider.services.replay import ReplayCache, ReplayStatus

SECRET = "s3cr3t"
# HMAC-SHA256("s3cr3t", "m1" + "t1" + "{}")
EXPECTED_FIXTURE_SIGNATURE = (
    "sha256=b21ef9da4ef6189ae9599fff82cc7e424cec69a966cac13041cb2e9ff4fce9b1"
)
REDEMPTION = {
    "subscription": {"type": "channel.channel_points_custom_reward_redemption.add"},
    "event": {
        "id": "r1",
        "user_id": "u1",
        "user_login": "viewer",
        "broadcaster_user_id": "b1",
        "reward": {"id": "rw1", "title": "Mint me", "cost": 100},
    },
}


def signed_headers(message_id: str, body: bytes, message_type: str = "notification") -> dict:
    return {
        "Twitch-Eventsub-Message-Id": message_id,
        "Twitch-Eventsub-Message-Timestamp": "2024-01-01T00:00:00Z",
        "Twitch-Eventsub-Message-Signature": compute_signature(
            SECRET, message_id, "2024-01-01T00:00:00Z", body
        ),
        "Twitch-Eventsub-Message-Type": message_type,
    }


def test_fixture_signature_matches_precomputed_digest():
    assert compute_signature(SECRET, "m1", "t1", b"{}") == EXPECTED_FIXTURE_SIGNATURE


def test_verify_accepts_fixture_signature():
    authenticator = WebhookAuthenticator(SECRET)
    headers = {
        "twitch-eventsub-message-id": "m1",
        "twitch-eventsub-message-timestamp": "t1",
        "twitch-eventsub-message-signature": EXPECTED_FIXTURE_SIGNATURE,
        "twitch-eventsub-message-type": "notification",
    }
    verified = authenticator.verify(headers, b"{}", now=0)
    assert verified.replay is ReplayStatus.FIRST_SEEN
    assert verified.headers.message_id == "m1"


@pytest.mark.parametrize(
    "missing",
    [
        "Twitch-Eventsub-Message-Id",
        "Twitch-Eventsub-Message-Timestamp",
        "Twitch-Eventsub-Message-Signature",
        "Twitch-Eventsub-Message-Type",
    ],
)
def test_missing_header_is_rejected(missing):
    headers = signed_headers("m1", b"{}")
    headers.pop(missing)
    with pytest.raises(MissingHeadersError) as exc_info:
        extract_headers(headers)
    assert exc_info.value.http_status == 400


@pytest.mark.parametrize(
    "signature",
    [
        "sha256=" + "0" * 64,
        "sha256=deadbeef",
        EXPECTED_FIXTURE_SIGNATURE.upper(),
    ],
)
def test_wrong_signature_is_rejected(signature):
    authenticator = WebhookAuthenticator(SECRET)
    headers = {
        "twitch-eventsub-message-id": "m1",
        "twitch-eventsub-message-timestamp": "t1",
        "twitch-eventsub-message-signature": signature,
        "twitch-eventsub-message-type": "notification",
    }
    with pytest.raises(InvalidSignatureError) as exc_info:
        authenticator.verify(headers, b"{}")
    assert exc_info.value.http_status == 403
    assert "m1" not in authenticator.replay_cache


def test_tampered_body_is_rejected():
    authenticator = WebhookAuthenticator(SECRET)
    headers = signed_headers("m1", b'{"a":1}')
    with pytest.raises(InvalidSignatureError):
        authenticator.verify(headers, b'{"a": 1}')


def test_empty_secret_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        WebhookAuthenticator("")


class TestReplayCache:
    def test_concurrent_registration_admits_one_delivery(self):
        cache = ReplayCache()
        barrier = threading.Barrier(16)

        def deliver(_):
            barrier.wait()
            return cache.register("m1")

        with ThreadPoolExecutor(max_workers=16) as pool:
            outcomes = list(pool.map(deliver, range(16)))

        assert outcomes.count(ReplayStatus.FIRST_SEEN) == 1
        assert outcomes.count(ReplayStatus.DUPLICATE) == 15
        assert len(cache) == 1

    def test_duplicate_within_window(self):
        cache = ReplayCache()
        assert cache.register("m1", now=1000) is ReplayStatus.FIRST_SEEN
        assert cache.register("m1", now=1001) is ReplayStatus.DUPLICATE

    def test_first_seen_again_after_window(self):
        cache = ReplayCache(window_seconds=600)
        assert cache.register("m1", now=1000) is ReplayStatus.FIRST_SEEN
        assert cache.register("m1", now=1000 + 601) is ReplayStatus.FIRST_SEEN

    def test_injected_clock(self):
        now = [1000.0]
        cache = ReplayCache(clock=lambda: now[0])
        cache.register("m1")
        now[0] += 599
        assert cache.register("m1") is ReplayStatus.DUPLICATE
        now[0] += 602
        assert cache.register("m1") is ReplayStatus.FIRST_SEEN

    def test_capacity_keeps_most_recent_arrivals(self):
        cache = ReplayCache(window_seconds=600, max_size=2000)
        for index in range(2001):
            cache.register(f"m{index}", now=1000 + index * 0.01)

        assert len(cache) == 2000
        assert "m0" not in cache
        assert "m1" in cache
        assert "m2000" in cache

    def test_equal_timestamps_evict_in_arrival_order(self):
        cache = ReplayCache(max_size=2)
        for message_id in ("a", "b", "c"):
            cache.register(message_id, now=5)
        assert "a" not in cache
        assert "b" in cache and "c" in cache


class TestProcess:
    @pytest.mark.asyncio
    async def test_challenge_is_echoed(self):
        authenticator = WebhookAuthenticator(SECRET)
        body = json.dumps({"challenge": "pogchamp-kappa-360noscope"}).encode()
        headers = signed_headers("m1", body, "webhook_callback_verification")

        async def handler(event):  # pragma: no cover - must not run
            raise AssertionError("handler invoked")

        outcome = await authenticator.process(headers, body, handler)

        assert outcome.kind is OutcomeKind.CHALLENGE
        assert outcome.status_code == 200
        assert outcome.body == "pogchamp-kappa-360noscope"
        assert outcome.media_type == "text/plain"

    @pytest.mark.asyncio
    async def test_notification_reaches_handler_once(self):
        authenticator = WebhookAuthenticator(SECRET)
        body = json.dumps(REDEMPTION).encode()
        headers = signed_headers("m1", body)
        events = []

        async def handler(event):
            events.append(event)
            return WebhookOutcome(OutcomeKind.DISPATCHED, 200, body={"ok": True})

        first = await authenticator.process(headers, body, handler)
        second = await authenticator.process(headers, body, handler)

        assert first.kind is OutcomeKind.DISPATCHED
        assert second.kind is OutcomeKind.DUPLICATE
        assert second.status_code == 204
        assert len(events) == 1
        assert events[0].twitch_user_id == "u1"
        assert events[0].message_id == "m1"
        assert events[0].reward_title == "Mint me"

    @pytest.mark.asyncio
    async def test_unknown_type_is_ignored(self, mocker):
        authenticator = WebhookAuthenticator(SECRET)
        body = b'{"subscription": {}}'
        handler = mocker.AsyncMock()

        outcome = await authenticator.process(signed_headers("m1", body, "revocation"), body, handler)

        assert outcome.kind is OutcomeKind.IGNORED
        assert outcome.status_code == 204
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_subscription_type_is_ignored(self, mocker):
        authenticator = WebhookAuthenticator(SECRET)
        payload = dict(REDEMPTION, subscription={"type": "channel.follow"})
        body = json.dumps(payload).encode()
        handler = mocker.AsyncMock()

        outcome = await authenticator.process(signed_headers("m1", body), body, handler)

        assert outcome.kind is OutcomeKind.IGNORED
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_json(self, mocker):
        authenticator = WebhookAuthenticator(SECRET)
        body = b"{not json"
        with pytest.raises(InvalidPayloadError) as exc_info:
            await authenticator.process(signed_headers("m1", body), body, mocker.AsyncMock())
        assert exc_info.value.http_status == 400
