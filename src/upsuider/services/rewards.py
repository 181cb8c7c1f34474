# src/upsuider/services/rewards.py
"""Server-key transactions: reward mints for redemptions and SUI transfers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock

from upsuider.core.errors import ChainExecutionError, ConfigurationError
from upsuider.services.chain import ExecutionResult, SuiRpcClient
from upsuider.services.crypto import CryptoService, Ed25519Keypair

logger = logging.getLogger(__name__)

SERVER_EXECUTE_OPTIONS = {"showEffects": True, "showEvents": True}
SERVER_REQUEST_TYPE = "WaitForLocalExecution"


@dataclass(frozen=True)
class MintMetadata:
    """On-chain display fields of a minted reward."""

    name: str
    description: str
    image_url: str


class RewardDispatcher:
    """Mints rewards to resolved viewer addresses using the server keypair.

    The keypair is decoded from configuration on first use, once, behind a lock.
    """

    def __init__(
        self,
        rpc: SuiRpcClient,
        *,
        package_id: str,
        module: str,
        function: str = "mint",
        secret_key: str | None = None,
        gas_budget: int = 20_000_000,
    ) -> None:
        self._rpc = rpc
        self.package_id = package_id
        self.module = module
        self.function = function
        self.gas_budget = gas_budget
        self._secret_key = secret_key
        self._signer: Ed25519Keypair | None = None
        self._signer_lock = Lock()

    @property
    def target(self) -> str:
        return f"{self.package_id}::{self.module}::{self.function}"

    def signer(self) -> Ed25519Keypair:
        """Return the server keypair, decoding it on first use.

        Raises:
            ConfigurationError: If no usable key is configured.
        """
        with self._signer_lock:
            if self._signer is None:
                if not self._secret_key:
                    raise ConfigurationError("SUI_KEYPAIR is required for server-side signing")
                try:
                    self._signer = CryptoService.decode_secret_key(self._secret_key)
                except ValueError as err:
                    raise ConfigurationError(f"SUI_KEYPAIR is not usable: {err}") from err
            return self._signer

    async def mint(self, address: str, metadata: MintMetadata) -> str:
        """Mint a reward to ``address`` and return the transaction digest.

        Raises:
            ConfigurationError: Missing server key.
            ChainExecutionError: The node refused to build or execute the call,
                or the transaction failed on chain.
        """
        signer = self.signer()
        transaction_bytes = await self._rpc.build_move_call(
            signer=signer.sui_address(),
            package_id=self.package_id,
            module=self.module,
            function=self.function,
            arguments=[metadata.name, metadata.description, metadata.image_url, address],
            gas_budget=self.gas_budget,
        )
        result = await self._submit(signer, transaction_bytes)
        if result.effects is not None and not result.succeeded:
            raise ChainExecutionError(f"Mint transaction {result.digest} failed on chain")
        logger.info("Minted %s to %s in %s", self.target, address, result.digest)
        return result.digest

    async def transfer(self, recipient: str, amount: int) -> ExecutionResult:
        """Send ``amount`` MIST from the server account to ``recipient``.

        The amount is split off the server's coins, the first of which pays gas.

        Raises:
            ConfigurationError: Missing server key.
            ChainExecutionError: The server owns no SUI, or the node refused the payment.
        """
        signer = self.signer()
        owner = signer.sui_address()
        coins = await self._rpc.get_coin_ids(owner)
        if not coins:
            raise ChainExecutionError("Server account owns no SUI coins")
        transaction_bytes = await self._rpc.build_pay_sui(
            signer=owner,
            input_coins=coins,
            recipients=[recipient],
            amounts=[amount],
            gas_budget=self.gas_budget,
        )
        result = await self._submit(signer, transaction_bytes)
        logger.info("Transferred %d MIST to %s in %s", amount, recipient, result.digest)
        return result

    async def _submit(self, signer: Ed25519Keypair, transaction_bytes: bytes) -> ExecutionResult:
        signature = CryptoService.sign_transaction(signer, transaction_bytes)
        return await self._rpc.execute_transaction(
            transaction_bytes,
            [signature],
            options=SERVER_EXECUTE_OPTIONS,
            request_type=SERVER_REQUEST_TYPE,
        )
