"""
store.py - Luminarias store.

Items are bought with a single unit of work: debit, purchase record and the
guarded stock decrement commit together.
"""

import logging
import time
from typing import TYPE_CHECKING, List, Optional

from luminarias.errors import InvalidAmount, InvalidRequest, NotFound, OutOfStock
from luminarias.ledger import Classification

if TYPE_CHECKING:
    from luminarias.ledger import Ledger

logger = logging.getLogger("store")

TARGET_ROLES = ("user", "creator", "both")


class StoreService:
    def __init__(self, ledger: "Ledger"):
        self.ledger = ledger
        self._storage = ledger.storage

    async def create_item(
        self,
        name: str,
        category: str,
        price: int,
        description: str = "",
        subcategory: str = "",
        item_type: str = "consumable",
        target_role: str = "both",
        stock: Optional[int] = None,
        duration_days: Optional[int] = None,
        max_uses: Optional[int] = None,
    ) -> dict:
        if isinstance(price, bool) or not isinstance(price, int) or price <= 0:
            raise InvalidAmount(f"Price must be a positive integer, got {price!r}")
        if target_role not in TARGET_ROLES:
            raise InvalidRequest(f"target_role must be one of {', '.join(TARGET_ROLES)}")
        if stock is not None and stock < 0:
            raise InvalidRequest("stock cannot be negative")
        if not name or not category:
            raise InvalidRequest("Item name and category are required")

        async with self._storage.transaction():
            item_id = await self._storage.store_items.insert(
                name, description, category, price,
                subcategory=subcategory, item_type=item_type, target_role=target_role,
                stock=stock, duration_days=duration_days, max_uses=max_uses,
            )
            item = await self._storage.store_items.get(item_id)
        logger.info("Store item %d created: %s at %d", item_id, name, price)
        return item

    async def list_items(
        self, category: Optional[str] = None, target_role: Optional[str] = None,
    ) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.store_items.list_active(category=category, target_role=target_role)

    async def purchase(self, user_id: int, item_id: int, quantity: int = 1, user_role: str = "user") -> dict:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidAmount(f"Quantity must be a positive integer, got {quantity!r}")

        storage = self._storage
        async with self.ledger.unit_of_work() as uow:
            item = await storage.store_items.get(item_id)
            if item is None or not item["is_active"]:
                raise NotFound(f"Store item {item_id} not found or inactive")
            if not await storage.store_items.take_stock(item_id, quantity):
                raise OutOfStock(f"Only {item['stock_remaining']} of {item['name']} left")

            total = item["price_luminarias"] * quantity
            tx_id = await uow.apply(
                user_id, "spend", total,
                Classification(
                    "store_purchase", item["category"], "buy_item",
                    f"Purchased {quantity}x {item['name']}",
                    user_role=user_role,
                ),
                reference_id=str(item_id),
                reference_type="store_item",
                metadata={"quantity": quantity, "unit_price": item["price_luminarias"]},
            )
            expires_at = None
            if item["duration_days"]:
                expires_at = time.time() + item["duration_days"] * 86400
            purchase_id = await storage.purchases.insert(
                user_id, item_id, tx_id, quantity, item["price_luminarias"],
                expires_at=expires_at,
                uses_remaining=item["max_uses"] * quantity if item["max_uses"] else None,
            )
            purchase = await storage.purchases.get(purchase_id)

        logger.info("User %s bought %dx item %d for %d", user_id, quantity, item_id, total)
        return purchase

    async def list_purchases(self, user_id: int, limit: int = 50, offset: int = 0) -> List[dict]:
        async with self._storage.snapshot():
            return await self._storage.purchases.list_for_user(user_id, limit=limit, offset=offset)
