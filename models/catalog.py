from __future__ import annotations
from typing import Optional, Dict, Any
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON


class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sku: str = Field(index=True)
    name: str
    type_id: str = "simple"
    description: str = ""
    short_description: str = ""
    weight: Optional[float] = None
    price: Optional[float] = None
    # Free-form EAV-style attribute values (color, brand, material, ...)
    attributes: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))

    def get_data(self, attribute_code: str) -> Any:
        if attribute_code in self.attributes:
            return self.attributes[attribute_code]
        if attribute_code in type(self).model_fields:
            return getattr(self, attribute_code)
        return None


class StockItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(index=True, unique=True)
    qty: float = 0.0
    is_in_stock: bool = True
    min_qty: Optional[float] = None


class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str


class ProductCategoryLink(SQLModel, table=True):
    product_id: int = Field(primary_key=True)
    category_id: int = Field(primary_key=True, index=True)
