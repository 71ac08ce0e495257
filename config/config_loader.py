import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, List
import yaml

from utils.logger import setup_logger
from utils.time_of_day import parse_time_of_day

logger = setup_logger(__name__)


STOCK_RULE_OPTIONS = (
    "all",
    "in_stock_only",
    "out_of_stock_only",
    "low_stock_only",
    "exclude_out_of_stock",
)

RULE_BLOB_KEYS = (
    "time_based_rules",
    "customer_segment_rules",
    "category_rules",
    "attribute_filters",
)


class ConfigurationError(Exception):
    pass


class ConfigLoader:
    def __init__(self, config_path: Optional[Path] = None):
        if config_path is None:
            base_dir = Path(__file__).resolve().parent
            config_path = base_dir / "config.yaml"
        
        self.config_path = Path(config_path)
        self._config: Optional[Dict[str, Any]] = None
        self._last_loaded: Optional[float] = None
    
    def load(self, force_reload: bool = False) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise ConfigurationError(f"config file not found: {self.config_path}")
        
        current_mtime = self.config_path.stat().st_mtime
        
        if not force_reload and self._config is not None and self._last_loaded == current_mtime:
            return self._config
        
        logger.info(
            "Loading configuration from file",
            extra={"config_path": str(self.config_path)}
        )
        
        with open(self.config_path, "r") as f:
            raw_config = yaml.safe_load(f)
        
        if raw_config is None:
            raise ConfigurationError("config file is empty")
        
        if not isinstance(raw_config, dict):
            raise ConfigurationError("config file must contain a mapping at the top level")
        
        self._config = self._interpolate_env_vars(raw_config)
        self._last_loaded = current_mtime
        
        logger.info("Configuration loaded successfully")
        
        return self._config
    
    def _interpolate_env_vars(self, config: Any) -> Any:
        if isinstance(config, dict):
            return {
                key: self._interpolate_env_vars(value)
                for key, value in config.items()
            }
        elif isinstance(config, list):
            return [self._interpolate_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._replace_env_vars_in_string(config)
        else:
            return config
    
    def _replace_env_vars_in_string(self, value: str) -> str:
        pattern = re.compile(r'\$\{([^}]+)\}')
        
        def replacer(match):
            env_var = match.group(1)
            env_value = os.getenv(env_var)
            
            if env_value is None:
                logger.warning(
                    f"Environment variable not found: {env_var}",
                    extra={"env_var": env_var}
                )
                return match.group(0)
            
            return env_value
        
        return pattern.sub(replacer, value)
    
    def get(self, path: str, default: Any = None) -> Any:
        if self._config is None:
            self.load()
        
        keys = path.split('.')
        current = self._config
        
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        
        return current
    
    def reload(self) -> Dict[str, Any]:
        logger.info("Reloading configuration")
        return self.load(force_reload=True)


def _section(config: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    current: Any = config
    for key in keys:
        current = current.get(key, {}) if isinstance(current, dict) else {}
    return current if isinstance(current, dict) else {}


def _scopes(config: Dict[str, Any]) -> List[tuple]:
    scopes = [("default", _section(config, "default", "productinfoagent"))]
    for store_code, store_config in _section(config, "stores").items():
        scopes.append((f"stores.{store_code}", _section(store_config, "productinfoagent")))
    return scopes


def _business_hours_warnings(scope: str, rules: Dict[str, Any]) -> List[str]:
    business_hours = rules.get("business_hours")
    if business_hours is None:
        return []
    if not isinstance(business_hours, dict):
        return [f"{scope} advanced_rules.time_based_rules.business_hours must be a mapping"]
    warnings = []
    for bound in ("start", "end"):
        value = business_hours.get(bound)
        if value not in (None, "") and parse_time_of_day(value) is None:
            warnings.append(
                f"{scope} advanced_rules.time_based_rules.business_hours.{bound} "
                f"is not a HH:MM time: {value!r}"
            )
    return warnings


class ConfigValidator:
    @staticmethod
    def validate_server_config(config: Dict[str, Any]) -> List[str]:
        errors = []
        
        server = config.get('server', {})
        
        port = server.get('port')
        if port is not None and (not isinstance(port, int) or port < 1 or port > 65535):
            errors.append(f"invalid port: {port}")
        
        return errors
    
    @staticmethod
    def validate_suggestions_config(config: Dict[str, Any]) -> List[str]:
        errors = []
        
        for scope, agent in _scopes(config):
            suggestions = agent.get('suggestions', {}) or {}
            
            per_load = suggestions.get('per_load')
            if per_load is not None and (not isinstance(per_load, int) or per_load < 1):
                errors.append(f"invalid {scope} suggestions.per_load: {per_load} (must be a positive integer)")
            
            lifetime = suggestions.get('cache_lifetime')
            if lifetime is not None and (not isinstance(lifetime, int) or lifetime < 0):
                errors.append(f"invalid {scope} suggestions.cache_lifetime: {lifetime} (must be >= 0 days)")
        
        return errors
    
    @staticmethod
    def validate_advanced_rules_config(config: Dict[str, Any]) -> List[str]:
        errors = []
        
        for scope, agent in _scopes(config):
            rules = agent.get('advanced_rules', {}) or {}
            
            stock_rule = rules.get('stock_rules')
            if stock_rule is not None and stock_rule not in STOCK_RULE_OPTIONS:
                errors.append(
                    f"invalid {scope} advanced_rules.stock_rules: {stock_rule} "
                    f"(must be one of {', '.join(STOCK_RULE_OPTIONS)})"
                )
        
        return errors
    
    @staticmethod
    def validate_rule_blobs(config: Dict[str, Any]) -> List[str]:
        """Malformed rule blobs only degrade to "not configured" at runtime,
        so these are reported as warnings rather than start-up errors."""
        warnings = []
        
        for scope, agent in _scopes(config):
            rules = agent.get('advanced_rules', {}) or {}
            for key in RULE_BLOB_KEYS:
                raw = rules.get(key)
                if raw is None or (isinstance(raw, str) and not raw.strip()):
                    continue
                if isinstance(raw, str):
                    try:
                        decoded = json.loads(raw)
                    except ValueError as e:
                        warnings.append(f"{scope} advanced_rules.{key} is not valid JSON: {e}")
                        continue
                else:
                    decoded = raw
                if not isinstance(decoded, dict):
                    warnings.append(f"{scope} advanced_rules.{key} must be a JSON object or mapping")
                    continue
                if key == "time_based_rules":
                    warnings.extend(_business_hours_warnings(scope, decoded))
        
        return warnings
    
    @staticmethod
    def validate(config: Dict[str, Any]) -> List[str]:
        all_errors = []
        
        all_errors.extend(ConfigValidator.validate_server_config(config))
        all_errors.extend(ConfigValidator.validate_suggestions_config(config))
        all_errors.extend(ConfigValidator.validate_advanced_rules_config(config))
        
        return all_errors


config_loader: Optional[ConfigLoader] = None


def init_config_loader(config_path: Optional[Path] = None) -> ConfigLoader:
    global config_loader
    config_loader = ConfigLoader(config_path=config_path)
    
    config = config_loader.load()
    
    validation_errors = ConfigValidator.validate(config)
    if validation_errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {err}" for err in validation_errors)
        logger.error(error_msg)
        raise ConfigurationError(error_msg)
    
    for warning in ConfigValidator.validate_rule_blobs(config):
        logger.warning(warning)
    
    logger.info("Configuration validated successfully")
    
    return config_loader


def get_config_loader() -> ConfigLoader:
    if config_loader is None:
        raise ConfigurationError("config loader not initialized. Call init_config_loader() first")
    return config_loader
