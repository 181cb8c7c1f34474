# src/upsuider/api/v1/endpoints/salts.py
"""Salt endpoints for zkLogin address derivation."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError

from upsuider.api.v1.dependencies import ServicesDep, SessionDep
from upsuider.core.errors import AuthenticationFlowError, SaltInvalidError
from upsuider.repositories.salt_repo import SqlSaltStore
from upsuider.schemas.salt import (
    SaltEnsureRequest,
    SaltEnsureResponse,
    SaltExistsResponse,
    SaltUpsertRequest,
    SaltVerifyRequest,
    SaltVerifyResponse,
)
from upsuider.services.salts import SaltRegistry
from upsuider.services.zklogin import subject_from_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/salts", tags=["salts"])


def get_salt_registry(db: SessionDep) -> SaltRegistry:
    return SaltRegistry(SqlSaltStore(db))


SaltRegistryDep = Annotated[SaltRegistry, Depends(get_salt_registry)]


@router.post("")
async def upsert_salt(
    payload: SaltUpsertRequest,
    response: Response,
    db: SessionDep,
    registry: SaltRegistryDep,
) -> dict[str, bool]:
    """Assign a salt explicitly without echoing it back."""
    if not registry.is_valid(payload.salt):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_salt", "message": "Salt must be in BN254 field range"},
        )
    created = registry.replace_salt(payload.twitch_id, payload.salt)
    db.commit()
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"ok": True}


@router.post("/ensure", response_model=SaltEnsureResponse)
async def ensure_salt(
    payload: SaltEnsureRequest,
    response: Response,
    db: SessionDep,
    registry: SaltRegistryDep,
    services: ServicesDep,
) -> SaltEnsureResponse:
    """Return the salt for the subject of a Twitch identity token, creating it once.

    With ``TWITCH_CLIENT_ID`` configured, tokens issued to other clients are refused.
    """
    audience = services.settings.twitch_client_id or None
    try:
        subject = subject_from_token(payload.jwt, audience=audience)
    except AuthenticationFlowError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_jwt", "message": str(err)},
        ) from err

    try:
        try:
            salt, created = registry.ensure_salt(subject)
            db.commit()
        except IntegrityError:
            # A concurrent request created the record first; it wins.
            db.rollback()
            salt, created = registry.ensure_salt(subject)
    except SaltInvalidError as err:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "invalid_salt", "message": str(err)},
        ) from err

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return SaltEnsureResponse(salt=salt)


@router.get("/{twitch_id}", response_model=SaltExistsResponse)
async def salt_exists(twitch_id: str, registry: SaltRegistryDep) -> SaltExistsResponse:
    """Report whether a salt exists without revealing it."""
    if not registry.exists(twitch_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found"},
        )
    return SaltExistsResponse(exists=True)


@router.post("/verify", response_model=SaltVerifyResponse)
async def verify_salt(payload: SaltVerifyRequest, registry: SaltRegistryDep) -> SaltVerifyResponse:
    """Check a candidate salt against the stored value."""
    return SaltVerifyResponse(valid=registry.verify(payload.twitch_id, payload.salt))
