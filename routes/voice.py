from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from config.assistant_config import ConfigProvider
from models import ShopperIdentity
from routes.dependencies import get_config, get_identity
from services.voice_service import VoiceService

router = APIRouter(prefix="/voice", tags=["voice"])

_voice_service: Optional[VoiceService] = None


def get_voice_service(config: ConfigProvider = Depends(get_config)) -> VoiceService:
    global _voice_service
    if _voice_service is None:
        _voice_service = VoiceService(config)
    else:
        _voice_service.config = config
    return _voice_service


class VoiceRequest(BaseModel):
    text: str
    product_id: Optional[int] = None


@router.post("")
def generate_voice(
    body: VoiceRequest,
    identity: ShopperIdentity = Depends(get_identity),
    service: VoiceService = Depends(get_voice_service)
):
    if not body.text.strip():
        raise HTTPException(status_code=400, detail="text is required")
    return service.generate_voice(body.text, body.product_id, identity.session_id)
