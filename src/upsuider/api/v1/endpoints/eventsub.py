# src/upsuider/api/v1/endpoints/eventsub.py
"""Twitch EventSub webhook endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from upsuider.api.v1.dependencies import ServicesDep, SessionDep
from upsuider.core.errors import (
    ChainExecutionError,
    ConfigurationError,
    FlowTimeoutError,
    WebhookError,
)
from upsuider.repositories.wallet_repo import WalletRepository
from upsuider.services.eventsub import OutcomeKind, RedemptionEvent, WebhookOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/eventsub", tags=["eventsub"])


def _render(outcome: WebhookOutcome) -> Response:
    if outcome.kind is OutcomeKind.CHALLENGE:
        return PlainTextResponse(str(outcome.body), status_code=outcome.status_code)
    if outcome.status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return JSONResponse(content=outcome.body, status_code=outcome.status_code)


@router.post("/callback")
async def eventsub_callback(
    request: Request,
    db: SessionDep,
    services: ServicesDep,
) -> Response:
    """Authenticate a delivery and mint the redeemed reward to the viewer's wallet."""
    raw_body = await request.body()
    try:
        authenticator = services.authenticator()
    except ConfigurationError as err:
        logger.error("EventSub callback rejected: %s", err)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "not_configured"},
        )

    async def handle_redemption(event: RedemptionEvent) -> WebhookOutcome:
        address = WalletRepository(db).lookup(event.twitch_user_id)
        if address is None:
            return WebhookOutcome(
                OutcomeKind.DISPATCHED,
                status.HTTP_404_NOT_FOUND,
                body={
                    "error": "wallet_not_found",
                    "message": "Wallet not found for Twitch user",
                    "twitchUserId": event.twitch_user_id,
                },
            )

        body: dict[str, str] = {"twitchUserId": event.twitch_user_id, "walletAddress": address}
        dispatcher = services.reward_dispatcher()
        if dispatcher is not None:
            try:
                body["digest"] = await dispatcher.mint(address, services.mint_metadata())
            except ConfigurationError as err:
                logger.error("Reward mint misconfigured: %s", err)
                return WebhookOutcome(
                    OutcomeKind.DISPATCHED,
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    body={"error": "internal_error", "message": "Reward minting is not configured"},
                )
            except (ChainExecutionError, FlowTimeoutError) as err:
                logger.error("Reward mint for message %s failed: %s", event.message_id, err)
                return WebhookOutcome(
                    OutcomeKind.DISPATCHED,
                    status.HTTP_502_BAD_GATEWAY,
                    body={"error": "mint_failed", "message": "Failed to mint reward"},
                )
        return WebhookOutcome(OutcomeKind.DISPATCHED, status.HTTP_200_OK, body=body)

    try:
        outcome = await authenticator.process(request.headers, raw_body, handle_redemption)
    except WebhookError as err:
        logger.warning("EventSub delivery rejected: %s", err)
        return JSONResponse(
            status_code=err.http_status,
            content={"error": err.error_code, "message": str(err)},
        )
    return _render(outcome)
