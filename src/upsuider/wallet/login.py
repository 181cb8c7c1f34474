"""zkLogin identity binding: from provider login to a usable session account."""

from __future__ import annotations

import logging
from collections.abc import Callable

from upsuider.core.errors import AuthenticationFlowError
from upsuider.services.chain import SuiRpcClient
from upsuider.services.crypto import Ed25519Keypair
from upsuider.services.prover import ProverClient, ZkProofRequest
from upsuider.services.zklogin import (
    KEY_CLAIM_NAME,
    decode_identity_claims,
    derive_address,
    extended_ephemeral_public_key,
    generate_nonce,
    generate_randomness,
)
from upsuider.wallet.accounts import Account, AccountStore
from upsuider.wallet.auth_flow import (
    NON_INTERACTIVE_TIMEOUT_SECONDS,
    AuthorizationLauncher,
    build_authorization_request,
    run_authorization,
)
from upsuider.wallet.config import ZkLoginConfig
from upsuider.wallet.salt_provider import LocalSaltProvider, SaltProvider, salt_provider_for

logger = logging.getLogger(__name__)


class IdentityBindingService:
    """Binds a provider identity to a zkLogin address and stores the session account.

    Network collaborators (RPC, prover, salt source) are built from the current
    configuration unless injected.
    """

    def __init__(
        self,
        config: ZkLoginConfig,
        launcher: AuthorizationLauncher,
        accounts: AccountStore | None = None,
        *,
        rpc: SuiRpcClient | None = None,
        prover: ProverClient | None = None,
        salt_provider: SaltProvider | None = None,
        keypair_factory: Callable[[], Ed25519Keypair] = Ed25519Keypair.generate,
        randomness_factory: Callable[[], str] = generate_randomness,
        non_interactive_timeout: float = NON_INTERACTIVE_TIMEOUT_SECONDS,
    ) -> None:
        self.config = config
        self.launcher = launcher
        self.accounts = accounts if accounts is not None else AccountStore()
        self._rpc_override = rpc
        self._rpc_clients: dict[str, SuiRpcClient] = {}
        self._prover = prover
        self._salt_provider = salt_provider
        self._local_salts = LocalSaltProvider()
        self._keypair_factory = keypair_factory
        self._randomness_factory = randomness_factory
        self.non_interactive_timeout = non_interactive_timeout

    def rpc(self) -> SuiRpcClient:
        """Return the RPC client for the configured network."""
        if self._rpc_override is not None:
            return self._rpc_override
        url = self.config.fullnode_url
        if url not in self._rpc_clients:
            self._rpc_clients[url] = SuiRpcClient(url)
        return self._rpc_clients[url]

    def _prover_client(self) -> ProverClient:
        return self._prover or ProverClient(self.config.prover_url)

    def _salts(self) -> SaltProvider:
        return self._salt_provider or salt_provider_for(self.config, self._local_salts)

    async def login(self, provider: str = "twitch", interactive: bool = True) -> Account:
        """Run the full login flow and store the resulting account.

        Raises:
            ConfigurationError: No client id for ``provider``.
            AuthenticationFlowError: The redirect response or token is unusable.
            FlowTimeoutError: A silent flow or a network call timed out.
            SaltInvalidError: The subject's stored salt is invalid.
            ProverError: The prover rejected the request.
            ChainExecutionError: The epoch query failed.
        """
        config = self.config
        client_id = config.client_id(provider)

        current_epoch = await self.rpc().get_current_epoch()
        max_epoch = current_epoch + config.max_epoch_offset

        ephemeral = self._keypair_factory()
        randomness = self._randomness_factory()
        nonce = generate_nonce(ephemeral, max_epoch, randomness)

        request = build_authorization_request(
            provider,
            client_id=client_id,
            redirect_uri=self.launcher.redirect_uri,
            scope=config.scope(provider),
            nonce=nonce,
            interactive=interactive,
        )
        id_token = await run_authorization(
            self.launcher,
            request,
            interactive=interactive,
            timeout_seconds=self.non_interactive_timeout,
        )

        claims = decode_identity_claims(id_token)
        if claims.nonce is not None and claims.nonce != nonce:
            raise AuthenticationFlowError(
                "Identity token is bound to a different nonce",
                reason="nonce_mismatch",
            )

        salt = await self._salts().ensure_salt(claims.sub, id_token)
        address = derive_address(claims.iss, claims.aud, claims.sub, salt)

        proof = await self._prover_client().fetch_proof(
            ZkProofRequest(
                max_epoch=str(max_epoch),
                jwt_randomness=randomness,
                extended_ephemeral_public_key=extended_ephemeral_public_key(ephemeral),
                jwt=id_token,
                salt=salt,
                key_claim_name=KEY_CLAIM_NAME,
            )
        )

        account = Account(
            provider=provider,
            address=address,
            salt=salt,
            subject=claims.sub,
            audience=claims.aud,
            issuer=claims.iss,
            max_epoch=max_epoch,
            randomness=randomness,
            zk_proof=proof,
            ephemeral_keypair=ephemeral,
        )
        self.accounts.add(account)
        logger.info("Bound %s account %s until epoch %s", provider, address, max_epoch)
        return account

    async def close(self) -> None:
        clients = list(self._rpc_clients.values())
        self._rpc_clients.clear()
        for client in clients:
            await client.close()
