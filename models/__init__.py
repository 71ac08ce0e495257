from .catalog import Product, StockItem, Category, ProductCategoryLink
from .suggestion import Suggestion, SuggestionView
from .identity import ShopperIdentity
