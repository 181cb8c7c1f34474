"""OAuth implicit-flow helpers for the identity provider redirect."""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit

from upsuider.core.errors import AuthenticationFlowError, FlowTimeoutError

logger = logging.getLogger(__name__)

PROVIDER_ENDPOINTS: dict[str, str] = {
    "twitch": "https://id.twitch.tv/oauth2/authorize",
}
NON_INTERACTIVE_TIMEOUT_SECONDS = 15.0
STATE_BYTES = 16


class AuthorizationLauncher(Protocol):
    """Opens the provider's authorization page and returns the final redirect URL.

    Implementations raise ``AuthenticationFlowError`` when the user cancels or the
    page cannot be shown.
    """

    redirect_uri: str

    async def launch(self, url: str, *, interactive: bool) -> str: ...


@dataclass(frozen=True)
class AuthorizationRequest:
    url: str
    state: str
    nonce: str
    redirect_uri: str


def generate_state() -> str:
    return secrets.token_hex(STATE_BYTES)


def build_authorization_request(
    provider: str,
    *,
    client_id: str,
    redirect_uri: str,
    scope: str,
    nonce: str,
    interactive: bool,
    state: str | None = None,
) -> AuthorizationRequest:
    """Build the implicit-flow URL requesting an ``id_token`` bound to ``nonce``."""
    try:
        endpoint = PROVIDER_ENDPOINTS[provider]
    except KeyError as err:
        raise AuthenticationFlowError(
            f"Unsupported provider: {provider}",
            reason="unsupported_provider",
        ) from err

    state = state or generate_state()
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "id_token",
        "scope": scope,
        "nonce": nonce,
        "state": state,
        "response_mode": "fragment",
    }
    if provider == "twitch":
        params["force_verify"] = "true"
        params["prompt"] = "login" if interactive else "none"
    return AuthorizationRequest(
        url=f"{endpoint}?{urlencode(params)}",
        state=state,
        nonce=nonce,
        redirect_uri=redirect_uri,
    )


def parse_fragment(url: str) -> dict[str, str]:
    """Return the key/value pairs of a URL fragment."""
    return dict(parse_qsl(urlsplit(url).fragment, keep_blank_values=True))


def extract_id_token(response_url: str, request: AuthorizationRequest) -> str:
    """Validate the redirect response and return the identity token.

    Raises:
        AuthenticationFlowError: Wrong redirect target, state mismatch, provider
            error or missing token, each with its own ``reason``.
    """
    if not response_url.startswith(request.redirect_uri):
        raise AuthenticationFlowError(
            "Authorization flow ended on an unexpected page",
            reason="unexpected_redirect",
        )
    params = parse_fragment(response_url)
    if params.get("state") != request.state:
        raise AuthenticationFlowError("OAuth state mismatch.", reason="state_mismatch")
    error = params.get("error")
    if error:
        raise AuthenticationFlowError(
            params.get("error_description") or error,
            reason="provider_error",
        )
    id_token = params.get("id_token")
    if not id_token:
        raise AuthenticationFlowError(
            "OAuth response did not include an id_token.",
            reason="missing_id_token",
        )
    return id_token


async def run_authorization(
    launcher: AuthorizationLauncher,
    request: AuthorizationRequest,
    *,
    interactive: bool,
    timeout_seconds: float = NON_INTERACTIVE_TIMEOUT_SECONDS,
) -> str:
    """Launch the redirect flow and return the identity token.

    Interactive flows wait for the user indefinitely; silent flows are bounded by
    ``timeout_seconds``.

    Raises:
        FlowTimeoutError: A silent flow did not complete in time.
        AuthenticationFlowError: The response was unusable.
    """
    launch = launcher.launch(request.url, interactive=interactive)
    if interactive:
        response_url = await launch
    else:
        try:
            response_url = await asyncio.wait_for(launch, timeout=timeout_seconds)
        except asyncio.TimeoutError as err:
            logger.info("Silent authorization timed out after %.0fs", timeout_seconds)
            raise FlowTimeoutError("Silent authorization timed out") from err
    return extract_id_token(response_url, request)
