from dataclasses import dataclass

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import settings
from src.core.exceptions import UnauthenticatedError

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CallerIdentity:
    uid: str
    role: str | None = None
    email: str | None = None


def extract_bearer_token(authorization: str | None) -> str:
    """Pull the credential out of an ``Authorization: Bearer ...`` header."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise UnauthenticatedError("Missing or invalid authorization header")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise UnauthenticatedError("Empty bearer token")
    return token


class IdentityService:
    """Client for the external identity provider that verifies bearer tokens.

    This service only consumes the verified identity; how tokens are issued
    and checked is the provider's business.
    """

    def __init__(
        self,
        verify_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.verify_url = verify_url or settings.identity_verify_url
        self.timeout = timeout or settings.identity_timeout_seconds
        self.transport = transport

    async def verify_authorization(self, authorization: str | None) -> CallerIdentity:
        return await self.verify_token(extract_bearer_token(authorization))

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def verify_token(self, token: str) -> CallerIdentity:
        """Ask the provider who ``token`` belongs to."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.verify_url, json={"token": token})

        if response.status_code in (400, 401, 403):
            logger.info("Bearer token rejected", status_code=response.status_code)
            raise UnauthenticatedError(f"Invalid token (status {response.status_code})")
        response.raise_for_status()

        data = response.json()
        uid = data.get("uid")
        if not uid:
            raise UnauthenticatedError("Identity provider returned no uid")
        return CallerIdentity(uid=uid, role=data.get("role"), email=data.get("email"))
