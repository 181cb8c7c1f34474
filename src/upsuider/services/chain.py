# src/upsuider/services/chain.py
"""Sui full node JSON-RPC client.

Only the calls this system needs are wrapped: the current epoch, coin listing,
transaction execution, and server-side construction of Move call and SUI
payment transactions.
"""

from __future__ import annotations

import base64
import itertools
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

import httpx

from upsuider.core.errors import ChainExecutionError, FlowTimeoutError

logger = logging.getLogger(__name__)

HTTP_OK = 200
DEFAULT_EXECUTE_OPTIONS: dict[str, bool] = {"showEffects": True, "showEvents": True}
SUI_COIN_TYPE = "0x2::sui::SUI"


@dataclass(frozen=True)
class ExecutionResult:
    """Digest, effects and events of an executed transaction block."""

    digest: str
    effects: Mapping[str, Any] | None = None
    events: Sequence[Any] = field(default_factory=tuple)
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @property
    def succeeded(self) -> bool:
        """Return True when the effects report on-chain success."""
        status = (self.effects or {}).get("status") or {}
        return status.get("status") == "success"


class SuiRpcClient:
    """Async JSON-RPC client for a Sui full node.

    The underlying ``httpx.AsyncClient`` is built on first use behind a lock and
    released by ``close``.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = Lock()
        self._ids = itertools.count(1)

    def _get_client(self) -> httpx.AsyncClient:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=self.timeout_seconds,
                    transport=self._transport,
                )
            return self._client

    async def close(self) -> None:
        """Close the HTTP client if it was created."""
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    async def call(self, method: str, params: Sequence[Any]) -> Any:
        """Invoke a JSON-RPC method and return its ``result``.

        Raises:
            FlowTimeoutError: The node did not answer in time.
            ChainExecutionError: Transport failure, HTTP error or JSON-RPC error.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        try:
            response = await self._get_client().post(self.url, json=payload)
        except httpx.TimeoutException as err:
            raise FlowTimeoutError(f"Sui RPC {method} timed out") from err
        except httpx.HTTPError as err:
            logger.warning("Sui RPC %s transport error: %s", method, err)
            raise ChainExecutionError(f"Sui RPC {method} failed: {err}") from err

        if response.status_code != HTTP_OK:
            raise ChainExecutionError(f"Sui RPC {method} returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as err:
            raise ChainExecutionError(f"Sui RPC {method} returned invalid JSON") from err

        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, Mapping) else str(error)
            raise ChainExecutionError(f"Sui RPC {method} error: {message}")
        if "result" not in body:
            raise ChainExecutionError(f"Sui RPC {method} returned no result")
        return body["result"]

    async def get_current_epoch(self) -> int:
        """Return the epoch of the latest Sui system state."""
        state = await self.call("suix_getLatestSuiSystemState", [])
        try:
            return int(state["epoch"])
        except (KeyError, TypeError, ValueError) as err:
            raise ChainExecutionError("System state response has no epoch") from err

    async def execute_transaction(
        self,
        transaction_bytes: bytes,
        signatures: Sequence[str],
        options: Mapping[str, Any] | None = None,
        request_type: str | None = None,
    ) -> ExecutionResult:
        """Submit signed transaction bytes for execution."""
        params: list[Any] = [
            base64.b64encode(transaction_bytes).decode(),
            list(signatures),
            dict(options if options is not None else DEFAULT_EXECUTE_OPTIONS),
        ]
        if request_type:
            params.append(request_type)
        result = await self.call("sui_executeTransactionBlock", params)
        if not isinstance(result, Mapping) or "digest" not in result:
            raise ChainExecutionError("Execution response has no digest")
        logger.info("Executed transaction %s", result["digest"])
        return ExecutionResult(
            digest=str(result["digest"]),
            effects=result.get("effects"),
            events=tuple(result.get("events") or ()),
            raw=result,
        )

    async def build_move_call(
        self,
        *,
        signer: str,
        package_id: str,
        module: str,
        function: str,
        arguments: Sequence[Any],
        type_arguments: Sequence[str] = (),
        gas_budget: int,
    ) -> bytes:
        """Have the node build ``TransactionData`` bytes for a Move call."""
        result = await self.call(
            "unsafe_moveCall",
            [
                signer,
                package_id,
                module,
                function,
                list(type_arguments),
                list(arguments),
                None,
                str(gas_budget),
            ],
        )
        try:
            return base64.b64decode(result["txBytes"])
        except (KeyError, TypeError, ValueError) as err:
            raise ChainExecutionError("Move call response has no txBytes") from err

    async def get_coin_ids(self, owner: str, coin_type: str = SUI_COIN_TYPE) -> list[str]:
        """Return the object ids of the first page of ``owner``'s coins."""
        result = await self.call("suix_getCoins", [owner, coin_type, None, None])
        try:
            return [str(coin["coinObjectId"]) for coin in result["data"]]
        except (KeyError, TypeError) as err:
            raise ChainExecutionError("Coin listing response is malformed") from err

    async def build_pay_sui(
        self,
        *,
        signer: str,
        input_coins: Sequence[str],
        recipients: Sequence[str],
        amounts: Sequence[int],
        gas_budget: int,
    ) -> bytes:
        """Have the node build a SUI payment that splits ``amounts`` off the input coins.

        The first input coin pays for gas; the rest are merged into it.
        """
        result = await self.call(
            "unsafe_paySui",
            [
                signer,
                list(input_coins),
                list(recipients),
                [str(amount) for amount in amounts],
                str(gas_budget),
            ],
        )
        try:
            return base64.b64decode(result["txBytes"])
        except (KeyError, TypeError, ValueError) as err:
            raise ChainExecutionError("Payment response has no txBytes") from err
