"""Salt-related Pydantic schemas.

Salt values are only ever returned by the ensure endpoint, to the holder of a
token for that subject; lookups only reveal existence.
"""

from pydantic import BaseModel, ConfigDict, Field


class SaltUpsertRequest(BaseModel):
    """Explicit salt assignment (operator recovery and legacy clients)."""

    model_config = ConfigDict(populate_by_name=True)

    twitch_id: str = Field(..., alias="twitchId", min_length=1)
    salt: str = Field(..., min_length=1, description="Decimal BN254 field element")


class SaltEnsureRequest(BaseModel):
    """Request a salt for the subject of an identity token."""

    jwt: str = Field(..., min_length=10, description="Twitch identity token")


class SaltEnsureResponse(BaseModel):
    salt: str


class SaltExistsResponse(BaseModel):
    exists: bool


class SaltVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    twitch_id: str = Field(..., alias="twitchId", min_length=1)
    salt: str = Field(..., min_length=1)


class SaltVerifyResponse(BaseModel):
    valid: bool
