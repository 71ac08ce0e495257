from .settings import settings
from .database import engine, create_db_and_tables, get_session
from .assistant_config import ConfigProvider, get_config_provider

__all__ = [
    "settings",
    "engine",
    "create_db_and_tables",
    "get_session",
    "ConfigProvider",
    "get_config_provider",
]
