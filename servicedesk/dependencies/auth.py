from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from servicedesk.core.config import Settings, get_settings

ADMIN_KEY_HEADER = "x-admin-key"


async def require_admin_key(
    settings: Annotated[Settings, Depends(get_settings)],
    admin_key: Annotated[str | None, Header(alias=ADMIN_KEY_HEADER)] = None,
) -> None:
    """Reject the request unless it carries the configured admin key.

    A server without a configured key refuses every admin call with a 500 so
    the misconfiguration is visible rather than silently open.
    """

    if not settings.admin_key:
        raise HTTPException(status_code=500, detail="ADMIN_KEY not configured in server env")
    if not admin_key or not hmac.compare_digest(admin_key, settings.admin_key):
        raise HTTPException(status_code=401, detail="Unauthorized (missing/invalid x-admin-key)")


AdminGuard = Depends(require_admin_key)
