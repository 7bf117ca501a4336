# ghaudit/infrastructure/github/auth.py

import asyncio
import time
from datetime import datetime
from typing import Callable

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

from ghaudit.application.exceptions import ConfigurationError, UpstreamResponseError

JWT_ALGORITHM = "RS256"
JWT_BACKDATE_SECONDS = 60  # clock drift allowance recommended by GitHub
JWT_LIFETIME_SECONDS = 9 * 60  # GitHub caps App JWTs at 10 minutes
TOKEN_REFRESH_MARGIN_SECONDS = 60


class GitHubAppAuth:
    """
    GitHub App installation authentication. Signs an App JWT with the private key and
    exchanges it for an installation token, cached until shortly before it expires.
    """

    def __init__(
        self,
        app_id: int,
        install_id: int,
        private_key: bytes,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        try:
            key = serialization.load_pem_private_key(private_key, password=None)
        except (ValueError, TypeError) as e:
            raise ConfigurationError("invalid GitHub App private key", app_id=app_id) from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError("GitHub App private key must be an RSA key", app_id=app_id)

        self._app_id = app_id
        self._install_id = install_id
        self._pem = private_key.decode("utf-8")
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: str | None = None
        self._expires_at: float = 0.0

    @property
    def install_id(self) -> int:
        return self._install_id

    def app_jwt(self) -> str:
        now = int(self._clock())
        claims = {
            "iat": now - JWT_BACKDATE_SECONDS,
            "exp": now + JWT_LIFETIME_SECONDS,
            "iss": str(self._app_id),
        }
        return jwt.encode(claims, self._pem, algorithm=JWT_ALGORITHM)

    def _token_valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at - TOKEN_REFRESH_MARGIN_SECONDS

    async def installation_token(self, client: httpx.AsyncClient) -> str:
        """Return a valid installation token, requesting a new one when needed."""
        async with self._lock:
            if self._token_valid():
                return self._token  # type: ignore[return-value]

            path = f"/app/installations/{self._install_id}/access_tokens"
            try:
                resp = await client.post(
                    path,
                    headers={"Authorization": f"Bearer {self.app_jwt()}"},
                )
            except httpx.HTTPError as e:
                raise UpstreamResponseError(
                    "failed to request installation token", body=str(e), path=path
                ) from e
            if resp.status_code != httpx.codes.CREATED:
                raise UpstreamResponseError(
                    status_code=resp.status_code,
                    body=resp.text,
                    path=path,
                    install_id=self._install_id,
                )

            data = resp.json()
            self._token = data["token"]
            expires_at = data.get("expires_at")
            if expires_at:
                self._expires_at = datetime.fromisoformat(expires_at.replace("Z", "+00:00")).timestamp()
            else:
                self._expires_at = self._clock() + 3600
            return self._token
