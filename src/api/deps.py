from collections.abc import AsyncGenerator

import httpx
import structlog
from fastapi import Depends, Header, HTTPException, status

from src.core.config import settings
from src.core.exceptions import UnauthenticatedError
from src.services.identity_service import CallerIdentity, IdentityService
from src.services.lock_service import AggregationLock, create_redis_client

logger = structlog.get_logger()


def get_identity_service() -> IdentityService:
    return IdentityService()


async def get_current_identity(
    authorization: str | None = Header(None),
    identity_service: IdentityService = Depends(get_identity_service),
) -> CallerIdentity:
    """Resolve the caller from the bearer credential, or reject with 401."""
    try:
        return await identity_service.verify_authorization(authorization)
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.user_message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
    except httpx.HTTPError as e:
        logger.error("Identity provider unavailable", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        ) from e


async def require_trigger_role(
    identity: CallerIdentity = Depends(get_current_identity),
) -> CallerIdentity:
    allowed = settings.leaderboard_trigger_roles
    if allowed and identity.role not in allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to trigger leaderboard calculation",
        )
    return identity


async def get_aggregation_lock() -> AsyncGenerator[AggregationLock, None]:
    client = create_redis_client()
    try:
        yield AggregationLock(client)
    finally:
        await client.aclose()
