from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pathlib import Path
from config import settings, create_db_and_tables
from config.config_loader import init_config_loader
from middleware.logging_middleware import CorrelationIdMiddleware, RequestTimingMiddleware
from routes.api import router as api_router
from utils.logger import setup_logger

logger = setup_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application lifespan")
    
    init_config_loader(Path(settings.CONFIG_PATH) if settings.CONFIG_PATH else None)
    
    create_db_and_tables()
    logger.info("Database tables synchronized")
    
    yield
    
    logger.info("Application shutdown complete")


app = FastAPI(title="Shopping Assistant API", version="0.1.0", debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(RequestTimingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def root():
    return {"app": "Shopping Assistant", "status": "running"}
