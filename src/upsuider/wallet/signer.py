"""zkLogin transaction signing."""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from upsuider.core.errors import ExpiredAuthorizationError, SigningError
from upsuider.services.chain import ExecutionResult, SuiRpcClient
from upsuider.services.crypto import CryptoService
from upsuider.services.zklogin import (
    KEY_CLAIM_NAME,
    ZkLoginSignatureInputs,
    compute_address_from_seed,
    gen_address_seed,
    zklogin_signature,
)
from upsuider.wallet.accounts import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedTransaction:
    transaction_bytes: bytes
    signature: str
    user_signature: str
    address_seed: str

    @property
    def transaction_base64(self) -> str:
        return base64.b64encode(self.transaction_bytes).decode()


def address_seed_for(account: Account) -> int:
    """Recompute the address seed from the same inputs used at login."""
    return gen_address_seed(account.salt, KEY_CLAIM_NAME, account.subject, account.audience)


def address_seed_matches(account: Account) -> bool:
    """Return True if the signing-time seed reproduces the account's address."""
    return compute_address_from_seed(address_seed_for(account), account.issuer) == account.address


class SignatureAssembler:
    """Produces zkLogin compound signatures for a bound account."""

    def __init__(self, rpc: SuiRpcClient) -> None:
        self._rpc = rpc

    async def sign(self, transaction_bytes: bytes, account: Account) -> SignedTransaction:
        """Sign ``transaction_bytes`` with the account's ephemeral key.

        Raises:
            ExpiredAuthorizationError: The chain epoch is past ``account.max_epoch``.
            SigningError: The stored proof material is incomplete.
        """
        current_epoch = await self._rpc.get_current_epoch()
        if current_epoch > account.max_epoch:
            raise ExpiredAuthorizationError(current_epoch, account.max_epoch)

        user_signature = CryptoService.sign_transaction(account.ephemeral_keypair, transaction_bytes)
        address_seed = address_seed_for(account)
        try:
            inputs = ZkLoginSignatureInputs.from_prover(account.zk_proof, address_seed)
            signature = zklogin_signature(inputs, account.max_epoch, user_signature)
        except (KeyError, TypeError, ValueError) as err:
            raise SigningError(f"Stored proof material is unusable: {err}") from err

        return SignedTransaction(
            transaction_bytes=transaction_bytes,
            signature=signature,
            user_signature=user_signature,
            address_seed=str(address_seed),
        )

    async def sign_and_execute(
        self,
        transaction_bytes: bytes,
        account: Account,
        options: Mapping[str, Any] | None = None,
        request_type: str | None = None,
    ) -> ExecutionResult:
        """Sign and submit a transaction, returning its digest and effects.

        Raises:
            ExpiredAuthorizationError: The authorization window has closed.
            ChainExecutionError: The node rejected the transaction.
        """
        signed = await self.sign(transaction_bytes, account)
        result = await self._rpc.execute_transaction(
            signed.transaction_bytes,
            [signed.signature],
            options=options,
            request_type=request_type,
        )
        logger.info("zkLogin transaction %s from %s", result.digest, account.address)
        return result
