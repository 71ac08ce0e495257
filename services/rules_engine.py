"""
Advanced display rules for the shopping assistant.

The engine is a short-circuiting conjunction of independent checks. Each
check reports PASS, FAIL or INCONCLUSIVE; only FAIL hides the assistant.
Any unexpected error during evaluation shows the assistant (fail-open).
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlmodel import Session

from config.assistant_config import ConfigProvider
from models import Product
from models.suggestion import utc_now
from services.catalog_repository import CatalogRepository
from utils.logger import setup_logger
from utils.time_of_day import parse_time_of_day

logger = setup_logger(__name__)


DEFAULT_LOW_STOCK_THRESHOLD = 5.0
DEFAULT_BUSINESS_HOURS_START = "00:00"
DEFAULT_BUSINESS_HOURS_END = "24:00"


class CheckResult(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    INCONCLUSIVE = "inconclusive"


class RulesEngine:
    def __init__(
        self,
        config: ConfigProvider,
        catalog: Optional[CatalogRepository] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.config = config
        self.catalog = catalog or CatalogRepository()
        self.clock = clock

    def should_display(
        self,
        db_session: Session,
        product: Optional[Product] = None,
        category_id: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> bool:
        if not self.config.is_advanced_rules_enabled():
            return True

        context = context or {}

        try:
            for name, check in self._checks(db_session, product, category_id, context):
                result = check()
                if result == CheckResult.FAIL:
                    logger.info(
                        "Assistant hidden by display rule",
                        extra={
                            "rule": name,
                            "product_id": product.id if product else None,
                            "category_id": category_id,
                            "page_type": context.get("page_type")
                        }
                    )
                    return False
                if result == CheckResult.INCONCLUSIVE:
                    logger.warning(
                        "Display rule inconclusive, treating as pass",
                        extra={"rule": name, "product_id": product.id if product else None}
                    )
            return True
        except Exception as e:
            logger.error(
                f"RulesEngine error: {e}",
                extra={"product_id": product.id if product else None, "category_id": category_id},
                exc_info=True
            )
            return True

    def _checks(
        self,
        db_session: Session,
        product: Optional[Product],
        category_id: Optional[int],
        context: Dict[str, Any]
    ) -> List[Tuple[str, Callable[[], CheckResult]]]:
        checks: List[Tuple[str, Callable[[], CheckResult]]] = [
            ("time_based", self.check_time_based_rules),
            ("customer_segment", lambda: self.check_customer_segment_rules(context.get("customer_id"))),
        ]

        if category_id:
            checks.append(("category", lambda: self.check_category_rules(db_session, category_id)))

        if product is not None:
            checks.extend([
                ("product_type", lambda: self.check_product_type_rules(product)),
                ("stock", lambda: self.check_stock_rules(db_session, product)),
                ("attribute_filters", lambda: self.check_attribute_filters(product)),
            ])

        return checks

    def check_time_based_rules(self) -> CheckResult:
        rules = self.config.get_time_based_rules()
        if not rules:
            return CheckResult.PASS

        now = self.clock()
        current_minute = now.hour * 60 + now.minute
        current_day = now.strftime("%A").lower()
        result = CheckResult.PASS

        business_hours = rules.get("business_hours")
        if isinstance(business_hours, dict):
            start = parse_time_of_day(_or_default(business_hours.get("start"), DEFAULT_BUSINESS_HOURS_START))
            end = parse_time_of_day(_or_default(business_hours.get("end"), DEFAULT_BUSINESS_HOURS_END))
            if start is None or end is None:
                logger.warning(
                    "Unreadable business hours, skipping time window",
                    extra={"start": business_hours.get("start"), "end": business_hours.get("end")}
                )
                result = CheckResult.INCONCLUSIVE
            elif current_minute < start or current_minute >= end:
                return CheckResult.FAIL

        days = rules.get("days")
        if isinstance(days, list) and days:
            allowed_days = {str(day).strip().lower() for day in days}
            if current_day not in allowed_days:
                return CheckResult.FAIL

        return result

    def check_customer_segment_rules(self, customer_id: Optional[int]) -> CheckResult:
        rules = self.config.get_customer_segment_rules()
        if not rules:
            return CheckResult.PASS

        if not customer_id:
            return CheckResult.FAIL if rules.get("registered_only") else CheckResult.PASS

        # Order history and registration date are not available here, so the
        # VIP and new-customer segments are accepted but never restrict display.
        if "vip_customers" in rules:
            logger.debug(
                "VIP customer segment configured but not evaluated",
                extra={"min_orders": (rules.get("vip_customers") or {}).get("min_orders", 0)}
            )
        if "new_customers" in rules:
            logger.debug(
                "New customer segment configured but not evaluated",
                extra={"max_days_registered": (rules.get("new_customers") or {}).get("max_days_registered", 30)}
            )

        return CheckResult.PASS

    def check_category_rules(self, db_session: Session, category_id: int) -> CheckResult:
        rules = self.config.get_category_rules()
        if not rules:
            return CheckResult.PASS

        excluded = rules.get("exclude_categories")
        if isinstance(excluded, list) and _contains_id(excluded, category_id):
            return CheckResult.FAIL

        included = rules.get("include_categories")
        if isinstance(included, list) and not _contains_id(included, category_id):
            return CheckResult.FAIL

        conditions = rules.get("category_conditions") or {}
        category_conditions = conditions.get(str(category_id)) if isinstance(conditions, dict) else None
        if isinstance(category_conditions, dict) and "min_products" in category_conditions:
            try:
                product_count = self.catalog.get_category_product_count(db_session, category_id)
                if product_count < float(category_conditions["min_products"]):
                    return CheckResult.FAIL
            except Exception as e:
                logger.warning(
                    f"Category condition check failed: {e}",
                    extra={"category_id": category_id}
                )

        return CheckResult.PASS

    def check_product_type_rules(self, product: Product) -> CheckResult:
        allowed_types = self.config.get_product_type_rules()
        if not allowed_types:
            return CheckResult.PASS

        return CheckResult.PASS if product.type_id in allowed_types else CheckResult.FAIL

    def check_stock_rules(self, db_session: Session, product: Product) -> CheckResult:
        stock_rule = self.config.get_stock_rules()
        if stock_rule == "all":
            return CheckResult.PASS

        try:
            stock_item = self.catalog.get_stock_item(db_session, product.id)
        except Exception as e:
            logger.warning(
                f"Stock rule check failed: {e}",
                extra={"product_id": product.id, "stock_rule": stock_rule}
            )
            return CheckResult.INCONCLUSIVE

        is_in_stock = bool(stock_item.is_in_stock)

        if stock_rule in ("in_stock_only", "exclude_out_of_stock"):
            passed = is_in_stock
        elif stock_rule == "out_of_stock_only":
            passed = not is_in_stock
        elif stock_rule == "low_stock_only":
            threshold = stock_item.min_qty or DEFAULT_LOW_STOCK_THRESHOLD
            passed = is_in_stock and stock_item.qty <= threshold
        else:
            passed = True

        return CheckResult.PASS if passed else CheckResult.FAIL

    def check_attribute_filters(self, product: Product) -> CheckResult:
        filters = self.config.get_attribute_filters()
        if not filters:
            return CheckResult.PASS

        for attribute_code, filter_value in filters.items():
            try:
                product_value = product.get_data(attribute_code)
                if not _attribute_matches(product_value, filter_value):
                    logger.debug(
                        "Attribute filter mismatch",
                        extra={"attribute": attribute_code, "product_id": product.id}
                    )
                    return CheckResult.FAIL
            except Exception as e:
                logger.warning(
                    f"Attribute filter check failed for {attribute_code}: {e}",
                    extra={"attribute": attribute_code, "product_id": product.id}
                )
                continue

        return CheckResult.PASS


def _or_default(value: Any, default: str) -> Any:
    return default if value is None or value == "" else value


def _contains_id(ids: List[Any], category_id: int) -> bool:
    return str(category_id) in {str(i).strip() for i in ids}


def _normalize(value: Any) -> str:
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _attribute_matches(product_value: Any, filter_value: Any) -> bool:
    if isinstance(filter_value, dict) and ("min" in filter_value or "max" in filter_value):
        numeric_value = float(product_value or 0)
        if filter_value.get("min") is not None and numeric_value < float(filter_value["min"]):
            return False
        if filter_value.get("max") is not None and numeric_value > float(filter_value["max"]):
            return False
        return True

    if isinstance(filter_value, dict):
        filter_value = list(filter_value.values())

    if isinstance(filter_value, list):
        return _normalize(product_value) in {_normalize(v) for v in filter_value}

    return _normalize(product_value) == _normalize(filter_value)
