from __future__ import annotations

from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout
from common import settings as common_settings
from common.models.api_models import AuthResponse, BalanceResponse, OperatorIdentity, SessionStartResponse
from common.utils.exceptions import APIException, AuthException, ConnectivityException
from loguru import logger

from accounting.token_store import TokenStore


class BackendAPIClient:
    """REST client for the accounting backend.

    Holds the bearer token returned by ``authenticate`` and attaches it to every
    request. Requests are never retried here; callers decide what a failure means.
    """

    def __init__(
        self,
        base_url: str = common_settings.BACKEND_API_URL,
        token_store: TokenStore | None = None,
        session: ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_store = token_store
        self._session = session
        self._owns_session = session is None
        self._token: str | None = token_store.load() if token_store is not None else None

    @property
    def token(self) -> str | None:
        return self._token

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            # No total timeout: a slow backend must not abort a session update mid-flight
            self._session = ClientSession(timeout=ClientTimeout(total=None))
            self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BackendAPIClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def clear_token(self) -> None:
        self._token = None
        if self._token_store is not None:
            self._token_store.clear()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(self, method: str, path: str, body: dict | None = None, params: dict | None = None) -> Any:
        await self.open()
        url = f"{self.base_url}{path}"
        logger.opt(colors=True).debug(f"<magenta>Backend request | method: {method} | path: {path}</magenta>")

        try:
            async with self._session.request(
                method, url, json=body, params=params, headers=self._headers()
            ) as response:
                if not 200 <= response.status < 300:
                    raise APIException(response.status, response.reason, path=path)
                return await response.json(content_type=None)
        except ClientError as e:
            raise ConnectivityException(f"Backend unreachable at {url}: {e}") from e

    # --- Auth ----------------------------------------------------------------

    async def authenticate(self, wallet_address: str, username: str | None = None) -> OperatorIdentity:
        """Sign in with a wallet address and keep the returned token for later calls."""
        body: dict[str, Any] = {"walletAddress": wallet_address}
        if username:
            body["username"] = username
        try:
            data = await self._request("POST", "/users/auth", body=body)
        except APIException as e:
            raise AuthException(e.status, e.reason, path=e.path) from e

        auth = AuthResponse.model_validate(data)
        self._token = auth.token
        if self._token_store is not None:
            self._token_store.save(auth.token)
        logger.info(f"Authenticated wallet {wallet_address[:16]}... as user {auth.user.id}")
        return auth.user

    # --- Mining sessions -----------------------------------------------------

    async def start_mining_session(
        self, user_id: str, algorithm: str, difficulty: str, gpu_info: str | None = None
    ) -> SessionStartResponse:
        data = await self._request(
            "POST",
            "/mining/start",
            body={"userId": user_id, "algorithm": algorithm, "difficulty": difficulty, "gpuInfo": gpu_info},
        )
        return SessionStartResponse.model_validate(data)

    async def update_mining_session(self, session_id: str, hash_rate: float, duration: int) -> Any:
        return await self._request(
            "PUT", f"/mining/update/{session_id}", body={"hashRate": hash_rate, "duration": duration}
        )

    async def stop_mining_session(self, session_id: str) -> Any:
        return await self._request("POST", f"/mining/stop/{session_id}")

    async def get_mining_history(self, user_id: str, page: int = 1, limit: int = 20) -> Any:
        return await self._request("GET", f"/mining/history/{user_id}", params={"page": page, "limit": limit})

    async def get_mining_leaderboard(self) -> Any:
        return await self._request("GET", "/mining/leaderboard")

    # --- Wallet --------------------------------------------------------------

    async def get_wallet_balance(self, user_id: str) -> float:
        data = await self._request("GET", f"/wallet/balance/{user_id}")
        return BalanceResponse.model_validate(data).virtual_balance

    async def request_withdrawal(self, user_id: str, amount: float, to_address: str) -> Any:
        if amount < common_settings.MIN_WITHDRAWAL_AMOUNT:
            raise ValueError(
                f"Minimum withdrawal is {common_settings.MIN_WITHDRAWAL_AMOUNT:g} {common_settings.BALANCE_CURRENCY}"
            )
        return await self._request(
            "POST", "/wallet/withdraw", body={"userId": user_id, "amount": amount, "toAddress": to_address}
        )
