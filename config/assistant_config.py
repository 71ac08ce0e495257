"""Scoped, read-only access to the assistant settings.

Settings are addressed by slash-separated paths such as
``productinfoagent/suggestions/per_load``. A store scope
(``stores.<code>``) overrides the ``default`` scope.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.config_loader import ConfigLoader
from utils.logger import setup_logger

logger = setup_logger(__name__)


XML_PATH_ASSISTANT_ENABLED = "productinfoagent/general/enabled"
XML_PATH_SHOW_ON_PRODUCT_PAGES = "productinfoagent/display/show_on_product_pages"
XML_PATH_SHOW_ON_CATEGORY_PAGES = "productinfoagent/display/show_on_category_pages"
XML_PATH_SHOW_ON_CMS_PAGES = "productinfoagent/display/show_on_cms_pages"
XML_PATH_CHAT_DISPLAY_MODE = "productinfoagent/chat/display_mode"
XML_PATH_SMART_ROTATION_ENABLED = "productinfoagent/suggestions/smart_rotation"
XML_PATH_RANDOMIZE_ENABLED = "productinfoagent/suggestions/randomize"
XML_PATH_SUGGESTIONS_PER_LOAD = "productinfoagent/suggestions/per_load"
XML_PATH_SUGGESTIONS_CACHE_LIFETIME = "productinfoagent/suggestions/cache_lifetime"
XML_PATH_ADVANCED_RULES_ENABLED = "productinfoagent/advanced_rules/enable_advanced_rules"
XML_PATH_TIME_BASED_RULES = "productinfoagent/advanced_rules/time_based_rules"
XML_PATH_CUSTOMER_SEGMENT_RULES = "productinfoagent/advanced_rules/customer_segment_rules"
XML_PATH_CATEGORY_RULES = "productinfoagent/advanced_rules/category_rules"
XML_PATH_PRODUCT_TYPE_RULES = "productinfoagent/advanced_rules/product_type_rules"
XML_PATH_STOCK_RULES = "productinfoagent/advanced_rules/stock_rules"
XML_PATH_ATTRIBUTE_FILTERS = "productinfoagent/advanced_rules/attribute_filters"
XML_PATH_VOICE_ENABLED = "productinfoagent/voice/enabled"
XML_PATH_VOICE_MODEL = "productinfoagent/voice/model"
XML_PATH_VOICE_CACHE_LIFETIME = "productinfoagent/voice/cache_lifetime"
XML_PATH_DEEPGRAM_API_KEY = "productinfoagent/voice/deepgram_api_key"

DEFAULT_SUGGESTIONS_PER_LOAD = 5
DEFAULT_SUGGESTIONS_CACHE_LIFETIME_DAYS = 7
DEFAULT_VOICE_CACHE_LIFETIME_MINUTES = 60

_MISSING = object()
_TRUE_STRINGS = {"1", "true", "yes", "on"}


class ConfigProvider:
    def __init__(self, config: Dict[str, Any], store_code: Optional[str] = None):
        self._config = config or {}
        self.store_code = store_code

    @classmethod
    def from_loader(cls, loader: ConfigLoader, store_code: Optional[str] = None) -> "ConfigProvider":
        return cls(loader.load(), store_code=store_code)

    def get_value(self, path: str, default: Any = None) -> Any:
        keys = path.split("/")
        if self.store_code:
            value = self._lookup(["stores", self.store_code, *keys])
            # an empty store key (`randomize:` in YAML) inherits the default scope
            if value is not _MISSING and value is not None:
                return value
        value = self._lookup(["default", *keys])
        return default if value is _MISSING or value is None else value

    def is_set_flag(self, path: str) -> bool:
        value = self.get_value(path)
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_STRINGS
        return bool(value)

    def _lookup(self, keys: List[str]) -> Any:
        current: Any = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return _MISSING
        return current

    def _get_int(self, path: str, default: int) -> int:
        value = self.get_value(path)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(
                "Non-numeric configuration value, using default",
                extra={"path": path, "value": str(value), "default": default}
            )
            return default

    def _decode_json(self, path: str) -> Dict[str, Any]:
        raw = self.get_value(path)
        if raw is None or raw == "":
            return {}
        if isinstance(raw, dict):
            return raw
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Malformed rule configuration ignored",
                extra={"path": path, "error": str(e)}
            )
            return {}
        if not isinstance(decoded, dict):
            logger.warning(
                "Rule configuration is not a JSON object, ignoring",
                extra={"path": path}
            )
            return {}
        return decoded

    # General / display

    def is_assistant_enabled(self) -> bool:
        return self.is_set_flag(XML_PATH_ASSISTANT_ENABLED)

    def show_on_product_pages(self) -> bool:
        return self.is_set_flag(XML_PATH_SHOW_ON_PRODUCT_PAGES)

    def show_on_category_pages(self) -> bool:
        return self.is_set_flag(XML_PATH_SHOW_ON_CATEGORY_PAGES)

    def show_on_cms_pages(self) -> bool:
        return self.is_set_flag(XML_PATH_SHOW_ON_CMS_PAGES)

    def get_chat_display_mode(self) -> str:
        return str(self.get_value(XML_PATH_CHAT_DISPLAY_MODE, "embedded"))

    # Suggestions

    def is_smart_rotation_enabled(self) -> bool:
        return self.is_set_flag(XML_PATH_SMART_ROTATION_ENABLED)

    def is_randomize_suggestions_enabled(self) -> bool:
        return self.is_set_flag(XML_PATH_RANDOMIZE_ENABLED)

    def get_suggestions_per_load(self) -> int:
        return self._get_int(XML_PATH_SUGGESTIONS_PER_LOAD, DEFAULT_SUGGESTIONS_PER_LOAD)

    def get_suggestions_cache_lifetime(self) -> int:
        """Cache lifetime in days; 0 disables reuse of stored suggestions."""
        return self._get_int(XML_PATH_SUGGESTIONS_CACHE_LIFETIME, DEFAULT_SUGGESTIONS_CACHE_LIFETIME_DAYS)

    # Advanced rules

    def is_advanced_rules_enabled(self) -> bool:
        return self.is_set_flag(XML_PATH_ADVANCED_RULES_ENABLED)

    def get_time_based_rules(self) -> Dict[str, Any]:
        return self._decode_json(XML_PATH_TIME_BASED_RULES)

    def get_customer_segment_rules(self) -> Dict[str, Any]:
        return self._decode_json(XML_PATH_CUSTOMER_SEGMENT_RULES)

    def get_category_rules(self) -> Dict[str, Any]:
        return self._decode_json(XML_PATH_CATEGORY_RULES)

    def get_attribute_filters(self) -> Dict[str, Any]:
        return self._decode_json(XML_PATH_ATTRIBUTE_FILTERS)

    def get_product_type_rules(self) -> List[str]:
        raw = self.get_value(XML_PATH_PRODUCT_TYPE_RULES)
        if not raw:
            return []
        if isinstance(raw, list):
            return [str(t).strip() for t in raw if str(t).strip()]
        raw = str(raw).strip()
        if raw.startswith("["):
            try:
                decoded = json.loads(raw)
            except ValueError as e:
                logger.warning(
                    "Malformed product type rules ignored",
                    extra={"path": XML_PATH_PRODUCT_TYPE_RULES, "error": str(e)}
                )
                return []
            return [str(t).strip() for t in decoded if str(t).strip()] if isinstance(decoded, list) else []
        return [t.strip() for t in raw.split(",") if t.strip()]

    def get_stock_rules(self) -> str:
        return str(self.get_value(XML_PATH_STOCK_RULES, "all")).strip() or "all"

    # Voice

    def is_voice_enabled(self) -> bool:
        return self.is_set_flag(XML_PATH_VOICE_ENABLED)

    def get_voice_model(self) -> str:
        return str(self.get_value(XML_PATH_VOICE_MODEL, "aura-asteria-en"))

    def get_voice_cache_lifetime(self) -> int:
        """Voice cache lifetime in minutes."""
        return self._get_int(XML_PATH_VOICE_CACHE_LIFETIME, DEFAULT_VOICE_CACHE_LIFETIME_MINUTES)

    def get_deepgram_api_key(self) -> str:
        key = self.get_value(XML_PATH_DEEPGRAM_API_KEY, "")
        # unresolved ${ENV} placeholders count as "not configured"
        if not key or str(key).startswith("${"):
            return ""
        return str(key)


def get_config_provider() -> ConfigProvider:
    from config.config_loader import config_loader, init_config_loader
    from config.settings import settings

    loader = config_loader
    if loader is None:
        config_path = Path(settings.CONFIG_PATH) if settings.CONFIG_PATH else None
        loader = init_config_loader(config_path)
    return ConfigProvider.from_loader(loader, store_code=settings.STORE_CODE)
