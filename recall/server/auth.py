"""API key authentication and caller identity via FastAPI dependency injection."""

import hmac

from fastapi import Header, HTTPException, Security
from fastapi.security import APIKeyHeader

from recall.server.config import settings

_api_key_header = APIKeyHeader(name="X-Recall-Key", auto_error=False)


async def require_auth(
    api_key: str | None = Security(_api_key_header),
) -> None:
    """Enforce API key authentication when RECALL_API_KEY is configured.

    Attach as a dependency to any route or router that should be protected.
    When RECALL_API_KEY is empty, all requests are allowed (local dev mode).
    """
    if not settings.api_key:
        return

    if not api_key:
        raise HTTPException(status_code=401, detail="Missing X-Recall-Key header")

    if not hmac.compare_digest(api_key.encode(), settings.api_key.encode()):
        raise HTTPException(status_code=403, detail="Invalid API key")


async def require_user(
    user_id: str | None = Header(None, alias="X-Recall-User", max_length=100),
) -> str:
    """The journal owner a request acts for, taken from the X-Recall-User header."""
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Recall-User header")
    return user_id.strip()
