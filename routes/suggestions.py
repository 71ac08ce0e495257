from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from config.database import get_session
from config.assistant_config import ConfigProvider
from models import ShopperIdentity
from routes.dependencies import get_config, get_identity
from services.suggestion_service import SuggestionService
from utils.fallback import with_fallback, empty_list
from utils.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


class TrackViewedRequest(BaseModel):
    suggestion_ids: List[int]


class SuggestionOut(BaseModel):
    id: int
    question: str
    priority: int


@with_fallback(empty_list)
def _load_suggestions(
    db: Session,
    config: ConfigProvider,
    product_id: int,
    identity: ShopperIdentity
) -> List[str]:
    return SuggestionService(config).get_suggestions(db, product_id, identity)


@router.get("/{product_id}", response_model=List[str])
def get_suggestions(
    product_id: int,
    identity: ShopperIdentity = Depends(get_identity),
    config: ConfigProvider = Depends(get_config),
    db: Session = Depends(get_session)
):
    return _load_suggestions(db, config, product_id, identity)


@router.post("/{product_id}/viewed")
def track_viewed(
    product_id: int,
    body: TrackViewedRequest,
    identity: ShopperIdentity = Depends(get_identity),
    config: ConfigProvider = Depends(get_config),
    db: Session = Depends(get_session)
):
    tracked = SuggestionService(config).track_viewed_suggestions(
        db, product_id, body.suggestion_ids, identity
    )
    return {"success": tracked}


@router.get("/{product_id}/unviewed", response_model=List[SuggestionOut])
def get_unviewed(
    product_id: int,
    identity: ShopperIdentity = Depends(get_identity),
    config: ConfigProvider = Depends(get_config),
    db: Session = Depends(get_session)
):
    return SuggestionService(config).get_unviewed_suggestions(db, product_id, identity)


@router.delete("/{product_id}/viewed")
def reset_viewed(
    product_id: int,
    identity: ShopperIdentity = Depends(get_identity),
    config: ConfigProvider = Depends(get_config),
    db: Session = Depends(get_session)
):
    reset = SuggestionService(config).reset_viewed_suggestions(db, product_id, identity)
    return {"success": reset}
