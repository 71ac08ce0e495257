from fastapi import APIRouter, Depends
from sqlmodel import Session, select, func
from typing import Dict, Any
from datetime import datetime, timezone

from config.database import get_session
from models import Suggestion
from utils.logger import setup_logger

logger = setup_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "shopping-assistant-api"
    }


@router.get("/detailed")
def detailed_health_check(session: Session = Depends(get_session)):
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "shopping-assistant-api",
        "checks": {}
    }
    
    try:
        result = session.exec(select(func.count()).select_from(Suggestion)).one()
        health_status["checks"]["database"] = {
            "status": "healthy",
            "suggestions_count": result
        }
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        health_status["status"] = "degraded"
    
    return health_status
