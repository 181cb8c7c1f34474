"""Server-funded transfer schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TransferRequest(BaseModel):
    """SUI payment from the server account, amount in MIST."""

    recipient: str = Field(..., min_length=3, description="Recipient Sui address")
    amount: int = Field(..., gt=0, lt=2**64)


class TransferResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    digest: str
    confirmed_local_execution: bool | None = Field(
        default=None, serialization_alias="confirmedLocalExecution"
    )
    effects: dict[str, Any] | None = None
    events: list[Any] = Field(default_factory=list)
