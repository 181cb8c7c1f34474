# src/upsuider/api/v1/endpoints/viewers.py
"""Wallet directory endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.exc import IntegrityError

from upsuider.api.v1.dependencies import SessionDep
from upsuider.repositories.wallet_repo import WalletRepository
from upsuider.schemas.viewer import ViewerCreateRequest, ViewerResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/viewers", tags=["viewers"])


@router.post("", response_model=ViewerResponse)
async def register_viewer(payload: ViewerCreateRequest, db: SessionDep) -> ViewerResponse:
    """Bind a Twitch user to the zkLogin address derived for them."""
    repo = WalletRepository(db)
    try:
        wallet, created = repo.upsert(
            wallet_address=payload.wallet_address,
            twitch_user_id=payload.twitch_user_id,
            provider=payload.provider,
            audience=payload.audience,
            registered_at=payload.registered_at,
        )
        db.commit()
    except IntegrityError as err:
        db.rollback()
        logger.warning("Wallet registration conflicts with an existing record")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "conflict",
                "message": "Twitch user is already bound to a different wallet",
            },
        ) from err

    db.refresh(wallet)
    logger.info("zkLogin wallet %s %s", wallet.wallet_address, "created" if created else "updated")
    return ViewerResponse.model_validate(wallet)


@router.get("/{twitch_id}", response_model=ViewerResponse)
async def get_viewer(twitch_id: str, db: SessionDep) -> ViewerResponse:
    """Return the wallet registered for a Twitch user."""
    wallet = WalletRepository(db).find_by_twitch_user_id(twitch_id)
    if wallet is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": "Wallet not found"},
        )
    return ViewerResponse.model_validate(wallet)
