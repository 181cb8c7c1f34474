# src/upsuider/api/v1/endpoints/transactions.py
"""Server-funded transaction endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from upsuider.api.v1.dependencies import ServicesDep
from upsuider.core.errors import ChainExecutionError, ConfigurationError, FlowTimeoutError
from upsuider.schemas.transaction import TransferRequest, TransferResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("/transfer", response_model=TransferResponse)
async def transfer(payload: TransferRequest, services: ServicesDep) -> TransferResponse:
    """Send SUI from the server account and wait for local execution."""
    if not services.settings.server_transfers_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "transfers_disabled", "message": "Server transfers are disabled"},
        )
    try:
        result = await services.server_dispatcher().transfer(payload.recipient, payload.amount)
    except ConfigurationError as err:
        logger.error("Transfer rejected: %s", err)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "not_configured", "message": "Server signing key is not configured"},
        ) from err
    except (ChainExecutionError, FlowTimeoutError) as err:
        logger.error("Transfer to %s failed: %s", payload.recipient, err)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "transfer_failed", "message": str(err)},
        ) from err

    return TransferResponse(
        digest=result.digest,
        confirmed_local_execution=result.raw.get("confirmedLocalExecution"),
        effects=dict(result.effects) if result.effects is not None else None,
        events=list(result.events),
    )
