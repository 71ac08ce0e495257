from __future__ import annotations
import hashlib
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from sqlmodel import Session

from config.assistant_config import ConfigProvider
from models import Product
from services.rules_engine import RulesEngine
from utils.logger import setup_logger

logger = setup_logger(__name__)


PAGE_PRODUCT = "product"
PAGE_CATEGORY = "category"
PAGE_CMS = "cms"
PAGE_UNKNOWN = "unknown"


class PageRequest(BaseModel):
    """The storefront request the assistant would be rendered into."""
    module_name: str = ""
    action_name: str = ""
    params: Dict[str, Any] = Field(default_factory=dict)

    def get_param(self, name: str, default: Any = None) -> Any:
        value = self.params.get(name)
        return default if value in (None, "") else value


def is_category_page(page: PageRequest) -> bool:
    return (
        (page.module_name == "catalog" and page.action_name == "view")
        or (page.module_name == "catalogsearch" and page.action_name == "index")
    )


def is_cms_page(page: PageRequest) -> bool:
    return page.module_name == "cms"


def resolve_page_type(page: PageRequest, product: Optional[Product] = None) -> str:
    if product is not None and product.id:
        return PAGE_PRODUCT
    if is_category_page(page):
        return PAGE_CATEGORY
    if is_cms_page(page):
        return PAGE_CMS
    return PAGE_UNKNOWN


def resolve_page_identifier(page: PageRequest, product: Optional[Product] = None) -> str:
    if product is not None and product.id:
        return f"product_{product.id}"

    if page.module_name == "catalog" and page.action_name == "view":
        return f"category_{page.get_param('id', 'unknown')}"

    if page.module_name == "catalogsearch" and page.action_name == "index":
        query = str(page.get_param("q", ""))
        return f"search_{hashlib.md5(query.encode('utf-8')).hexdigest()}"

    if page.module_name == "cms":
        if page.action_name == "index":
            return "cms_home"
        page_id = page.get_param("page_id") or page.get_param("id")
        return f"cms_{page_id or 'unknown'}"

    return f"page_{page.module_name}_{page.action_name}"


class DisplayService:
    def __init__(self, config: ConfigProvider, rules_engine: Optional[RulesEngine] = None):
        self.config = config
        self.rules_engine = rules_engine or RulesEngine(config)

    def should_display_chat(
        self,
        db_session: Session,
        page: PageRequest,
        product: Optional[Product] = None,
        customer_id: Optional[int] = None
    ) -> bool:
        if not self.config.is_assistant_enabled():
            return False

        page_type = resolve_page_type(page, product)

        if page_type == PAGE_PRODUCT:
            if not self.config.show_on_product_pages():
                return False
        elif page_type == PAGE_CATEGORY:
            if not self.config.show_on_category_pages():
                return False
        elif page_type == PAGE_CMS:
            if not self.config.show_on_cms_pages():
                return False
        else:
            return False

        category_id = None
        if page_type == PAGE_CATEGORY:
            try:
                category_id = int(page.get_param("id", 0)) or None
            except (TypeError, ValueError):
                category_id = None

        return self.rules_engine.should_display(
            db_session,
            product=product,
            category_id=category_id,
            context={
                "page_type": page_type,
                "page_identifier": resolve_page_identifier(page, product),
                "request": page,
                "customer_id": customer_id,
            }
        )
