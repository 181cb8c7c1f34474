"""Wallet directory Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ViewerCreateRequest(BaseModel):
    """Registration of a zkLogin address for a Twitch user."""

    model_config = ConfigDict(populate_by_name=True)

    twitch_user_id: str = Field(..., alias="twitchUserId", min_length=1)
    wallet_address: str = Field(..., alias="walletAddress", min_length=3)
    provider: str = Field(default="twitch", min_length=1)
    audience: str | None = Field(default=None, min_length=1)
    registered_at: datetime | None = Field(default=None, alias="registeredAt")


class ViewerResponse(BaseModel):
    """Serialized wallet directory record."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    twitch_user_id: str = Field(..., serialization_alias="twitchUserId")
    wallet_address: str = Field(..., serialization_alias="walletAddress")
    provider: str
    audience: str | None = None
    registered_at: datetime | None = Field(default=None, serialization_alias="registeredAt")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")
