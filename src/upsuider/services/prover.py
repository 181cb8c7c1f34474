# src/upsuider/services/prover.py
"""Client for the external zkLogin proof service."""

from __future__ import annotations

import logging
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from upsuider.core.errors import FlowTimeoutError, ProverError

logger = logging.getLogger(__name__)

_MAX_LOGGED_BODY = 512


class ZkProofRequest(BaseModel):
    """Body posted to the prover. The JWT is excluded from ``repr``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    max_epoch: str = Field(..., alias="maxEpoch")
    jwt_randomness: str = Field(..., alias="jwtRandomness")
    extended_ephemeral_public_key: str = Field(..., alias="extendedEphemeralPublicKey")
    jwt: str = Field(..., repr=False)
    salt: str = Field(..., repr=False)
    key_claim_name: Literal["sub"] = Field(default="sub", alias="keyClaimName")


class ProverClient:
    """POSTs proof requests and returns the opaque proof material."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def fetch_proof(self, request: ZkProofRequest) -> dict[str, Any]:
        """Request a proof for a bound identity token.

        Raises:
            ProverError: Non-2xx response; carries status and body for diagnostics.
            FlowTimeoutError: The prover did not answer in time.
        """
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(self.url, json=request.model_dump(by_alias=True))
            except httpx.TimeoutException as err:
                raise FlowTimeoutError("Prover request timed out") from err
            except httpx.HTTPError as err:
                raise ProverError(0, str(err)) from err

        if not response.is_success:
            body = response.text
            logger.warning(
                "Prover rejected request (%s): %s",
                response.status_code,
                body[:_MAX_LOGGED_BODY],
            )
            raise ProverError(response.status_code, body)
        try:
            proof = response.json()
        except ValueError as err:
            raise ProverError(response.status_code, "Prover returned invalid JSON") from err
        if not isinstance(proof, dict):
            raise ProverError(response.status_code, "Prover returned a non-object payload")
        return proof
