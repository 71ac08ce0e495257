import hashlib
from datetime import datetime

import pytest

from services.display_service import (
    DisplayService, PageRequest, resolve_page_identifier, resolve_page_type
)
from utils.seeded_shuffle import seeded_shuffle, session_hour_seed
from helpers import make_provider, create_product


ENABLED = {
    "productinfoagent/general/enabled": True,
    "productinfoagent/display/show_on_product_pages": True,
    "productinfoagent/display/show_on_category_pages": True,
    "productinfoagent/display/show_on_cms_pages": False,
}


@pytest.mark.parametrize("module,action,params,expected", [
    ("catalog", "view", {"id": "12"}, "category_12"),
    ("catalog", "view", {}, "category_unknown"),
    ("cms", "index", {}, "cms_home"),
    ("cms", "page", {"page_id": "about-us"}, "cms_about-us"),
    ("cms", "page", {}, "cms_unknown"),
    ("checkout", "cart", {}, "page_checkout_cart"),
])
def test_page_identifiers(module, action, params, expected):
    page = PageRequest(module_name=module, action_name=action, params=params)
    assert resolve_page_identifier(page) == expected


def test_search_identifier_hashes_query():
    page = PageRequest(module_name="catalogsearch", action_name="index", params={"q": "tent"})
    assert resolve_page_identifier(page) == "search_" + hashlib.md5(b"tent").hexdigest()
    assert resolve_page_type(page) == "category"


def test_product_takes_precedence(db):
    product = create_product(db)
    page = PageRequest(module_name="catalog", action_name="view", params={"id": "3"})

    assert resolve_page_type(page, product) == "product"
    assert resolve_page_identifier(page, product) == f"product_{product.id}"


def test_disabled_assistant_never_displays(db):
    service = DisplayService(make_provider(dict(ENABLED, **{"productinfoagent/general/enabled": False})))
    assert not service.should_display_chat(db, PageRequest(), product=create_product(db))


def test_page_type_toggles(db):
    service = DisplayService(make_provider(ENABLED))

    assert service.should_display_chat(db, PageRequest(module_name="catalog", action_name="view"))
    assert not service.should_display_chat(db, PageRequest(module_name="cms", action_name="index"))
    assert not service.should_display_chat(db, PageRequest(module_name="customer", action_name="account"))


class RecordingRulesEngine:
    def __init__(self):
        self.calls = []

    def should_display(self, db_session, product=None, category_id=None, context=None):
        self.calls.append((product, category_id, context))
        return True


def test_category_page_passes_category_and_customer_to_rules(db):
    rules = RecordingRulesEngine()
    service = DisplayService(make_provider(ENABLED), rules_engine=rules)

    page = PageRequest(module_name="catalog", action_name="view", params={"id": "12"})
    assert service.should_display_chat(db, page, customer_id=42)

    product, category_id, context = rules.calls[0]
    assert product is None
    assert category_id == 12
    assert context["customer_id"] == 42
    assert context["page_type"] == "category"


def test_shuffle_is_deterministic_per_session_and_hour():
    items = list(range(10))
    seed = session_hour_seed("abc", datetime(2026, 10, 19, 10, 5))

    assert seed == session_hour_seed("abc", datetime(2026, 10, 19, 10, 59))
    assert seed != session_hour_seed("abc", datetime(2026, 10, 19, 11, 0))
    assert seed != session_hour_seed("xyz", datetime(2026, 10, 19, 10, 5))

    shuffled = seeded_shuffle(items, seed)
    assert shuffled == seeded_shuffle(items, seed)
    assert sorted(shuffled) == items
