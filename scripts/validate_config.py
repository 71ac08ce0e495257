#!/usr/bin/env python
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.assistant_config import ConfigProvider
from config.config_loader import ConfigLoader, ConfigValidator, ConfigurationError
from utils.logger import setup_logger

logger = setup_logger(__name__)


def validate_configuration(config_path=None, store_code=None) -> bool:
    print("\n" + "="*80)
    print(" Shopping Assistant Configuration Validator")
    print("="*80 + "\n")
    
    try:
        loader = ConfigLoader(config_path=config_path)
        print(f"[INFO] Loading configuration from {loader.config_path}...")
        config = loader.load()
    except (ConfigurationError, OSError, ValueError) as e:
        print(f"\n[ERROR] Failed to load configuration: {str(e)}\n")
        logger.error("Configuration load failed", exc_info=True)
        return False
    
    print("[INFO] Configuration loaded successfully\n")
    
    print("[INFO] Running validation checks...")
    errors = ConfigValidator.validate(config)
    warnings = ConfigValidator.validate_rule_blobs(config)
    
    for warning in warnings:
        print(f"  [WARN] {warning} (rule group will be ignored)")
    
    if errors:
        print(f"\n[ERROR] Configuration validation failed with {len(errors)} error(s):\n")
        for error in errors:
            print(f"  [FAIL] {error}")
        print()
        return False
    
    print("[INFO] All validation checks passed\n")
    
    provider = ConfigProvider(config, store_code=store_code)
    print(f"Effective settings (store: {store_code or 'default'}):")
    print("-" * 80)
    print(f"  Assistant enabled:   {provider.is_assistant_enabled()}")
    print(f"  Advanced rules:      {provider.is_advanced_rules_enabled()}")
    print(f"  Stock rule:          {provider.get_stock_rules()}")
    print(f"  Smart rotation:      {provider.is_smart_rotation_enabled()}")
    print(f"  Randomize:           {provider.is_randomize_suggestions_enabled()}")
    print(f"  Suggestions/load:    {provider.get_suggestions_per_load()}")
    print(f"  Cache lifetime:      {provider.get_suggestions_cache_lifetime()} day(s)")
    print(f"  Voice enabled:       {provider.is_voice_enabled()}")
    print("-" * 80 + "\n")
    
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Validate the assistant configuration file")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--store", default=None, help="Store code to resolve settings for")
    args = parser.parse_args()
    
    success = validate_configuration(args.config, args.store)
    sys.exit(0 if success else 1)
