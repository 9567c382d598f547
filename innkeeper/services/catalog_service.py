"""
Product catalog - price lookup and stock decrement for booking charges
decrement_stock never commits; it runs inside the caller's atomic unit.
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from innkeeper.errors import ProductNotFound, InsufficientStock, ValidationFailed
from innkeeper.models.ontology import Product

logger = logging.getLogger(__name__)


class CatalogService:
    """Product catalog"""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFound(product_id)
        return product

    def list_products(self, is_active: Optional[bool] = None,
                      category: Optional[str] = None) -> List[Product]:
        query = self.db.query(Product)
        if is_active is not None:
            query = query.filter(Product.is_active == is_active)
        if category:
            query = query.filter(Product.category == category)
        return query.order_by(Product.category, Product.name).all()

    def decrement_stock(self, product_id: int, quantity: int) -> Product:
        """Take `quantity` units out of stock when the product tracks inventory"""
        if quantity < 1:
            raise ValidationFailed("Quantity must be at least 1", quantity=quantity)
        product = self.db.query(Product).filter(
            Product.id == product_id
        ).with_for_update().first()
        if not product:
            raise ProductNotFound(product_id)
        if not product.track_inventory:
            return product

        available = product.stock_quantity or 0
        if available < quantity:
            raise InsufficientStock(product_id, quantity, available)
        product.stock_quantity = available - quantity
        logger.debug(f"Product {product_id} stock {available} -> {product.stock_quantity}")
        return product
