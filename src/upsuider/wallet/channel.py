"""Typed request/response channel between UI code and the wallet session."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable, Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from upsuider.core.errors import SigningError, UpsuiderError
from upsuider.services.chain import SuiRpcClient
from upsuider.wallet.config import merge_config
from upsuider.wallet.login import IdentityBindingService
from upsuider.wallet.signer import SignatureAssembler

logger = logging.getLogger(__name__)


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class ConfigGetRequest(_Request):
    type: Literal["config:get"] = "config:get"


class ConfigUpdateRequest(_Request):
    type: Literal["config:update"] = "config:update"
    config: dict[str, Any] = Field(default_factory=dict)


class AccountsGetRequest(_Request):
    type: Literal["accounts:get"] = "accounts:get"


class AccountsClearRequest(_Request):
    type: Literal["accounts:clear"] = "accounts:clear"


class AccountsRemoveRequest(_Request):
    type: Literal["accounts:remove"] = "accounts:remove"
    address: str


class LoginRequest(_Request):
    type: Literal["login"] = "login"
    provider: Literal["twitch"] = "twitch"
    interactive: bool = True


class SignAndExecuteRequest(_Request):
    type: Literal["signAndExecuteTransactionBlock"] = "signAndExecuteTransactionBlock"
    address: str
    transaction_block: str = Field(..., alias="transactionBlock")
    options: dict[str, Any] | None = None
    request_type: str | None = Field(default=None, alias="requestType")


ChannelRequest = Annotated[
    Union[
        ConfigGetRequest,
        ConfigUpdateRequest,
        AccountsGetRequest,
        AccountsClearRequest,
        AccountsRemoveRequest,
        LoginRequest,
        SignAndExecuteRequest,
    ],
    Field(discriminator="type"),
]

_request_adapter: TypeAdapter[ChannelRequest] = TypeAdapter(ChannelRequest)


class ChannelError(BaseModel):
    kind: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ChannelResponse(BaseModel):
    """Discriminated result: ``payload`` when ``ok``, otherwise ``error``."""

    ok: bool
    payload: Any = None
    error: ChannelError | None = None

    @classmethod
    def success(cls, payload: Any = None) -> ChannelResponse:
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, kind: str, message: str) -> ChannelResponse:
        return cls(ok=False, error=ChannelError(kind=kind, message=message))

    @classmethod
    def from_error(cls, err: UpsuiderError) -> ChannelResponse:
        """Wrap a domain failure, keeping structured fields such as ``reason``."""
        data = err.to_dict()
        kind = data.pop("kind")
        message = data.pop("message")
        return cls(ok=False, error=ChannelError(kind=kind, message=message, detail=data))


def parse_request(raw: Mapping[str, Any]) -> ChannelRequest:
    """Validate an untyped message into one of the request kinds."""
    return _request_adapter.validate_python(dict(raw))


class SessionChannel:
    """Dispatches channel requests to the login and signing services.

    ``handle`` never raises: every failure becomes a ``ChannelResponse`` whose
    error carries the failure ``kind`` and a message free of key material.
    """

    def __init__(
        self,
        identity: IdentityBindingService,
        signer_factory: Callable[[SuiRpcClient], SignatureAssembler] = SignatureAssembler,
    ) -> None:
        self.identity = identity
        self._signer_factory = signer_factory

    async def handle(self, request: ChannelRequest | Mapping[str, Any]) -> ChannelResponse:
        if isinstance(request, Mapping):
            try:
                request = parse_request(request)
            except ValidationError as err:
                return ChannelResponse.failure("invalid_request", _describe(err))
        try:
            return ChannelResponse.success(await self._dispatch(request))
        except UpsuiderError as err:
            logger.info("Channel request %s failed: %s", request.type, err.kind)
            return ChannelResponse.from_error(err)
        except ValidationError as err:
            return ChannelResponse.failure("invalid_request", _describe(err))
        except Exception:
            logger.exception("Channel request %s failed unexpectedly", request.type)
            return ChannelResponse.failure("internal", "Unexpected wallet error")

    async def _dispatch(self, request: ChannelRequest) -> Any:
        identity = self.identity
        if isinstance(request, ConfigGetRequest):
            return identity.config.model_dump(by_alias=True)
        if isinstance(request, ConfigUpdateRequest):
            identity.config = merge_config(identity.config, request.config)
            return identity.config.model_dump(by_alias=True)
        if isinstance(request, AccountsGetRequest):
            return [account.public_view() for account in identity.accounts.all()]
        if isinstance(request, AccountsClearRequest):
            identity.accounts.clear()
            return None
        if isinstance(request, AccountsRemoveRequest):
            return {"removed": identity.accounts.remove(request.address)}
        if isinstance(request, LoginRequest):
            account = await identity.login(request.provider, request.interactive)
            return account.public_view()
        if isinstance(request, SignAndExecuteRequest):
            return await self._sign_and_execute(request)
        raise TypeError(f"Unhandled channel request {request!r}")

    async def _sign_and_execute(self, request: SignAndExecuteRequest) -> dict[str, Any]:
        account = self.identity.accounts.get(request.address)
        if account is None:
            raise SigningError("No zkLogin account found.")
        try:
            transaction_bytes = base64.b64decode(request.transaction_block, validate=True)
        except (binascii.Error, ValueError) as err:
            raise SigningError("transactionBlock must be base64-encoded transaction bytes") from err

        signer = self._signer_factory(self.identity.rpc())
        result = await signer.sign_and_execute(
            transaction_bytes,
            account,
            options=request.options,
            request_type=request.request_type,
        )
        return {"digest": result.digest, "effects": result.effects, "events": list(result.events)}


def _describe(err: ValidationError) -> str:
    first = err.errors()[0] if err.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid request')}" if location else "invalid request"
