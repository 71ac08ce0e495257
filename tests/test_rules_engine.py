import json
from datetime import datetime

import pytest

from config.assistant_config import ConfigProvider
from config.config_loader import ConfigLoader, ConfigValidator
from models import Category, ProductCategoryLink
from services.rules_engine import RulesEngine, CheckResult
from helpers import build_config, make_provider, create_product, create_stock_item


# 2026-10-19 is a Monday
MONDAY_NOON = datetime(2026, 10, 19, 12, 0)


def rules_provider(**rules) -> ConfigProvider:
    settings = {"productinfoagent/advanced_rules/enable_advanced_rules": True}
    for key, value in rules.items():
        if isinstance(value, (dict, list)) and key != "product_type_rules":
            value = json.dumps(value)
        settings[f"productinfoagent/advanced_rules/{key}"] = value
    return make_provider(settings)


def engine_for(provider: ConfigProvider, now: datetime = MONDAY_NOON) -> RulesEngine:
    return RulesEngine(provider, clock=lambda: now)


def test_disabled_advanced_rules_always_display(db):
    provider = make_provider({
        "productinfoagent/advanced_rules/enable_advanced_rules": False,
        "productinfoagent/advanced_rules/category_rules": '{"exclude_categories": [7]}',
        "productinfoagent/advanced_rules/stock_rules": "out_of_stock_only",
    })
    product = create_product(db)
    create_stock_item(db, product, qty=10)

    engine = engine_for(provider)

    assert engine.should_display(db, product=product, category_id=7)
    assert engine.should_display(db)


def test_no_rules_configured_displays(db):
    engine = engine_for(rules_provider())
    assert engine.should_display(db, product=create_product(db), category_id=3)


def test_empty_time_window_and_days_never_fail():
    engine = engine_for(rules_provider(time_based_rules={"days": []}))
    assert engine.check_time_based_rules() == CheckResult.PASS


@pytest.mark.parametrize("now,expected", [
    (datetime(2026, 10, 19, 8, 59), CheckResult.FAIL),
    (datetime(2026, 10, 19, 9, 0), CheckResult.PASS),
    (datetime(2026, 10, 19, 16, 59), CheckResult.PASS),
    (datetime(2026, 10, 19, 17, 0), CheckResult.FAIL),
])
def test_business_hours_window_is_half_open(now, expected):
    provider = rules_provider(time_based_rules={"business_hours": {"start": "09:00", "end": "17:00"}})
    assert engine_for(provider, now).check_time_based_rules() == expected


def test_allowed_days(db):
    provider = rules_provider(time_based_rules={"days": ["Saturday", "sunday"]})
    assert not engine_for(provider).should_display(db)
    assert engine_for(provider, datetime(2026, 10, 24, 12, 0)).should_display(db)


def test_registered_only_hides_for_guests(db):
    engine = engine_for(rules_provider(customer_segment_rules={"registered_only": True}))
    assert not engine.should_display(db, context={"customer_id": None})
    assert engine.should_display(db, context={"customer_id": 42})


def test_vip_and_new_customer_segments_do_not_restrict(db):
    engine = engine_for(rules_provider(customer_segment_rules={
        "vip_customers": {"min_orders": 10},
        "new_customers": {"max_days_registered": 5},
    }))
    assert engine.should_display(db, context={"customer_id": 42})
    assert engine.should_display(db, context={})


def test_excluded_category_hides_without_product(db):
    engine = engine_for(rules_provider(category_rules={"exclude_categories": [7]}))
    assert not engine.should_display(db, product=None, category_id=7)
    assert engine.should_display(db, product=None, category_id=8)


def test_include_list_restricts_categories(db):
    engine = engine_for(rules_provider(category_rules={"include_categories": ["3", 4]}))
    assert engine.should_display(db, category_id=3)
    assert engine.should_display(db, category_id=4)
    assert not engine.should_display(db, category_id=5)


def test_category_minimum_product_count(db):
    db.add(Category(id=12, name="Tents"))
    for product_id in (1, 2):
        db.add(ProductCategoryLink(product_id=product_id, category_id=12))
    db.commit()

    strict = engine_for(rules_provider(category_rules={"category_conditions": {"12": {"min_products": 3}}}))
    loose = engine_for(rules_provider(category_rules={"category_conditions": {"12": {"min_products": 2}}}))

    assert not strict.should_display(db, category_id=12)
    assert loose.should_display(db, category_id=12)


def test_product_type_allow_list(db):
    engine = engine_for(rules_provider(product_type_rules="configurable,bundle"))
    assert not engine.should_display(db, product=create_product(db, type_id="simple"))
    assert engine.should_display(db, product=create_product(db, sku="B-1", type_id="bundle"))


def test_low_stock_uses_default_threshold(db):
    engine = engine_for(rules_provider(stock_rules="low_stock_only"))

    low = create_product(db, sku="LOW")
    create_stock_item(db, low, qty=3, is_in_stock=True)
    plenty = create_product(db, sku="PLENTY")
    create_stock_item(db, plenty, qty=10, is_in_stock=True)

    assert engine.should_display(db, product=low)
    assert not engine.should_display(db, product=plenty)


def test_low_stock_respects_configured_min_qty(db):
    engine = engine_for(rules_provider(stock_rules="low_stock_only"))
    product = create_product(db)
    create_stock_item(db, product, qty=10, is_in_stock=True, min_qty=12)
    assert engine.should_display(db, product=product)


@pytest.mark.parametrize("policy,in_stock,expected", [
    ("in_stock_only", True, True),
    ("in_stock_only", False, False),
    ("exclude_out_of_stock", False, False),
    ("out_of_stock_only", False, True),
    ("out_of_stock_only", True, False),
    ("something_else", False, True),
])
def test_stock_policies(db, policy, in_stock, expected):
    engine = engine_for(rules_provider(stock_rules=policy))
    product = create_product(db)
    create_stock_item(db, product, qty=1, is_in_stock=in_stock)
    assert engine.should_display(db, product=product) is expected


def test_missing_stock_item_is_inconclusive_and_displays(db):
    engine = engine_for(rules_provider(stock_rules="in_stock_only"))
    product = create_product(db)
    assert engine.check_stock_rules(db, product) == CheckResult.INCONCLUSIVE
    assert engine.should_display(db, product=product)


def test_attribute_filters(db):
    engine = engine_for(rules_provider(attribute_filters={
        "price": {"min": 10, "max": 100},
        "color": ["red", "blue"],
        "brand": "Acme",
    }))

    matching = create_product(db, sku="M", price=50.0, attributes={"color": "red", "brand": "Acme"})
    too_cheap = create_product(db, sku="C", price=5.0, attributes={"color": "red", "brand": "Acme"})
    wrong_color = create_product(db, sku="W", price=50.0, attributes={"color": "green", "brand": "Acme"})
    wrong_brand = create_product(db, sku="B", price=50.0, attributes={"color": "blue", "brand": "Other"})

    assert engine.should_display(db, product=matching)
    assert not engine.should_display(db, product=too_cheap)
    assert not engine.should_display(db, product=wrong_color)
    assert not engine.should_display(db, product=wrong_brand)


def test_attribute_lookup_error_skips_only_that_filter(db):
    engine = engine_for(rules_provider(attribute_filters={
        "size": {"min": 2},
        "color": "red",
    }))
    unparseable = create_product(db, sku="U", attributes={"size": "large", "color": "red"})
    wrong_color = create_product(db, sku="V", attributes={"size": "large", "color": "green"})

    assert engine.check_attribute_filters(unparseable) == CheckResult.PASS
    assert engine.check_attribute_filters(wrong_color) == CheckResult.FAIL


class ExplodingConfig(ConfigProvider):
    def get_category_rules(self):
        raise RuntimeError("config backend unavailable")


def test_unexpected_error_fails_open(db):
    provider = ExplodingConfig(build_config({
        "productinfoagent/advanced_rules/enable_advanced_rules": True,
    }))
    assert RulesEngine(provider, clock=lambda: MONDAY_NOON).should_display(db, category_id=7)


def test_malformed_rule_blob_is_ignored(db):
    provider = make_provider({
        "productinfoagent/advanced_rules/enable_advanced_rules": True,
        "productinfoagent/advanced_rules/category_rules": "{exclude_categories: [7]",
    })
    assert engine_for(provider).should_display(db, category_id=7)


YAML_RULES = """
default:
  productinfoagent:
    advanced_rules:
      enable_advanced_rules: true
      time_based_rules:
        business_hours:
          start: "08:00"
          end: 17:00
      category_rules:
        exclude_categories: [7]
"""


def test_yaml_mapping_rules_with_unquoted_times(tmp_path, db):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(YAML_RULES)
    loader = ConfigLoader(config_path=config_file)
    provider = ConfigProvider.from_loader(loader)

    assert loader.get("default.productinfoagent.advanced_rules.time_based_rules.business_hours.end") == 1020
    assert engine_for(provider).check_time_based_rules() == CheckResult.PASS
    assert engine_for(provider, datetime(2026, 10, 19, 17, 30)).check_time_based_rules() == CheckResult.FAIL
    # the later category check still runs
    assert not engine_for(provider).should_display(db, category_id=7)
    assert engine_for(provider).should_display(db, category_id=8)
    assert ConfigValidator.validate_rule_blobs(loader.load()) == []


def test_unreadable_business_hours_are_inconclusive(db):
    provider = make_provider({
        "productinfoagent/advanced_rules/enable_advanced_rules": True,
        "productinfoagent/advanced_rules/time_based_rules": {"business_hours": {"start": "noon", "end": "17:00"}},
        "productinfoagent/advanced_rules/category_rules": {"exclude_categories": [7]},
    })
    engine = engine_for(provider)

    assert engine.check_time_based_rules() == CheckResult.INCONCLUSIVE
    assert not engine.should_display(db, category_id=7)
    assert engine.should_display(db, category_id=8)


def test_validator_checks_mapping_form_business_hours():
    config = build_config({
        "productinfoagent/advanced_rules/time_based_rules": {"business_hours": {"start": "9am", "end": 17}},
        "productinfoagent/advanced_rules/category_rules": ["not", "a", "mapping"],
    })
    warnings = ConfigValidator.validate_rule_blobs(config)
    assert len(warnings) == 2
    assert any("business_hours.start" in w for w in warnings)
