"""Pydantic schemas for the Upsuider HTTP API."""

from .salt import (
    SaltEnsureRequest,
    SaltEnsureResponse,
    SaltExistsResponse,
    SaltUpsertRequest,
    SaltVerifyRequest,
    SaltVerifyResponse,
)
from .transaction import TransferRequest, TransferResponse
from .viewer import ViewerCreateRequest, ViewerResponse

__all__ = [
    "SaltEnsureRequest",
    "SaltEnsureResponse",
    "SaltExistsResponse",
    "SaltUpsertRequest",
    "SaltVerifyRequest",
    "SaltVerifyResponse",
    "TransferRequest",
    "TransferResponse",
    "ViewerCreateRequest",
    "ViewerResponse",
]
