from __future__ import annotations
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from config.database import get_session
from config.assistant_config import ConfigProvider
from models import Product, ShopperIdentity
from routes.dependencies import get_config, get_identity
from services.display_service import (
    DisplayService, PageRequest, resolve_page_identifier, resolve_page_type
)

router = APIRouter(prefix="/display", tags=["display"])


class DisplayDecisionRequest(BaseModel):
    module_name: str = ""
    action_name: str = ""
    params: Dict[str, Any] = Field(default_factory=dict)
    product_id: Optional[int] = None


class DisplayDecisionResponse(BaseModel):
    display: bool
    page_type: str
    page_identifier: str
    display_mode: str


@router.post("/decision", response_model=DisplayDecisionResponse)
def display_decision(
    body: DisplayDecisionRequest,
    identity: ShopperIdentity = Depends(get_identity),
    config: ConfigProvider = Depends(get_config),
    db: Session = Depends(get_session)
):
    page = PageRequest(module_name=body.module_name, action_name=body.action_name, params=body.params)
    product = db.get(Product, body.product_id) if body.product_id else None

    display = DisplayService(config).should_display_chat(
        db, page, product=product, customer_id=identity.customer_id
    )

    return DisplayDecisionResponse(
        display=display,
        page_type=resolve_page_type(page, product),
        page_identifier=resolve_page_identifier(page, product),
        display_mode=config.get_chat_display_mode()
    )
