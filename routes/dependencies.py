from __future__ import annotations
from typing import Optional
from uuid import uuid4

from fastapi import Header, HTTPException, Request, Response

from config.assistant_config import ConfigProvider, get_config_provider
from config.settings import settings
from models import ShopperIdentity


def get_config() -> ConfigProvider:
    return get_config_provider()


def get_identity(
    request: Request,
    response: Response,
    x_customer_id: Optional[str] = Header(default=None),
    x_session_id: Optional[str] = Header(default=None)
) -> ShopperIdentity:
    customer_id: Optional[int] = None
    if x_customer_id:
        try:
            customer_id = int(x_customer_id)
        except ValueError:
            raise HTTPException(400, "X-Customer-ID must be an integer")

    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME) or x_session_id
    if not session_id:
        session_id = uuid4().hex
        response.set_cookie(settings.SESSION_COOKIE_NAME, session_id, httponly=True, samesite="lax")

    return ShopperIdentity(customer_id=customer_id or None, session_id=session_id)
