from __future__ import annotations
from typing import Optional
from sqlmodel import Session, select, func

from models import Product, StockItem, ProductCategoryLink


class CatalogRepository:
    """Read-only view over the storefront catalog tables."""

    def get_product(self, db_session: Session, product_id: int) -> Product:
        product = db_session.get(Product, product_id)
        if not product:
            raise LookupError(f"Product {product_id} not found")
        return product

    def get_stock_item(self, db_session: Session, product_id: int) -> StockItem:
        stock_item = db_session.exec(
            select(StockItem).where(StockItem.product_id == product_id)
        ).first()
        if not stock_item:
            raise LookupError(f"Stock item for product {product_id} not found")
        return stock_item

    def get_category_product_count(self, db_session: Session, category_id: int) -> int:
        count: Optional[int] = db_session.exec(
            select(func.count()).select_from(ProductCategoryLink).where(
                ProductCategoryLink.category_id == category_id
            )
        ).one()
        return int(count or 0)
