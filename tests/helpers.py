from typing import Any, Dict, Optional

from sqlmodel import Session

from config.assistant_config import ConfigProvider
from models import Product, StockItem


def build_config(settings: Optional[Dict[str, Any]] = None, stores: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Build a raw config dict from slash-separated setting paths."""
    def nest(flat: Dict[str, Any]) -> Dict[str, Any]:
        tree: Dict[str, Any] = {}
        for path, value in flat.items():
            node = tree
            keys = path.split("/")
            for key in keys[:-1]:
                node = node.setdefault(key, {})
            node[keys[-1]] = value
        return tree

    config: Dict[str, Any] = {"default": nest(settings or {})}
    if stores:
        config["stores"] = {code: nest(values) for code, values in stores.items()}
    return config


def make_provider(settings: Optional[Dict[str, Any]] = None, stores=None, store_code=None) -> ConfigProvider:
    return ConfigProvider(build_config(settings, stores), store_code=store_code)


def create_product(db: Session, **overrides) -> Product:
    values: Dict[str, Any] = {
        "sku": "TEST-SKU",
        "name": "Trail Backpack",
        "type_id": "simple",
    }
    values.update(overrides)
    product = Product(**values)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def create_stock_item(db: Session, product: Product, qty: float, is_in_stock: bool = True, min_qty=None) -> StockItem:
    stock_item = StockItem(product_id=product.id, qty=qty, is_in_stock=is_in_stock, min_qty=min_qty)
    db.add(stock_item)
    db.commit()
    db.refresh(stock_item)
    return stock_item
