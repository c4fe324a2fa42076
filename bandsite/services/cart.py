"""
Hope & Failure Band Site - Shopping Cart

The cart lives in a signed cookie as a list of ``{id, size, quantity}``
lines.  Titles and prices are never taken from the browser: they are
resolved from the product map and the inventory table whenever the cart is
displayed or checked out.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fastapi import Request, Response

from bandsite.auth import sign_value, unsign_value
from bandsite.config import CART_COOKIE_NAME, CART_MAX_AGE, ONE_SIZE, PRODUCTS

# Upper bound on distinct lines so the cookie stays small
MAX_CART_LINES = 20


@dataclass
class CartLine:
    id: str
    quantity: int
    size: Optional[str] = None

    @property
    def stock_key(self) -> str:
        return self.size or ONE_SIZE

    def matches(self, product_id: str, size: Optional[str]) -> bool:
        return self.id == product_id and (self.size or None) == (size or None)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "size": self.size, "quantity": self.quantity}


@dataclass
class Cart:
    lines: List[CartLine] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def find(self, product_id: str, size: Optional[str]) -> Optional[CartLine]:
        for line in self.lines:
            if line.matches(product_id, size):
                return line
        return None

    def add_item(
        self,
        product_id: str,
        size: Optional[str] = None,
        quantity: int = 1,
        available: Optional[int] = None,
    ) -> bool:
        """
        Add *quantity* of a product, capped at *available* stock.

        Returns False when nothing could be added (out of stock, already at
        the stock limit, or the cart is full).
        """
        if quantity <= 0:
            return False
        line = self.find(product_id, size)
        current = line.quantity if line else 0
        target = current + quantity
        if available is not None:
            target = min(target, available)
        if target <= current:
            return False
        if line:
            line.quantity = target
        else:
            if len(self.lines) >= MAX_CART_LINES:
                return False
            self.lines.append(CartLine(id=product_id, size=size or None, quantity=target))
        return True

    def update_quantity(
        self, product_id: str, size: Optional[str], quantity: int
    ) -> bool:
        """Set a line's quantity; zero or less removes the line."""
        if quantity <= 0:
            return self.remove_item(product_id, size)
        line = self.find(product_id, size)
        if not line:
            return False
        line.quantity = quantity
        return True

    def remove_item(self, product_id: str, size: Optional[str] = None) -> bool:
        before = len(self.lines)
        self.lines = [l for l in self.lines if not l.matches(product_id, size)]
        return len(self.lines) != before

    def clear(self) -> None:
        self.lines = []

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    def subtotal(self) -> float:
        return round(
            sum(PRODUCTS.get(l.id, {}).get("price", 0) * l.quantity for l in self.lines),
            2,
        )

    def is_empty(self) -> bool:
        return not self.lines

    def to_checkout_items(self) -> List[Dict[str, Any]]:
        """Lines in the shape the checkout service expects."""
        items = []
        for line in self.lines:
            item: Dict[str, Any] = {"id": line.id, "quantity": line.quantity}
            if line.size:
                item["size"] = line.size
            items.append(item)
        return items


# ---------------------------------------------------------------------------
# Cookie persistence
# ---------------------------------------------------------------------------
def _parse_lines(raw: Any) -> List[CartLine]:
    lines: List[CartLine] = []
    if not isinstance(raw, list):
        return lines
    for entry in raw[:MAX_CART_LINES]:
        if not isinstance(entry, dict):
            continue
        try:
            quantity = int(entry.get("quantity", 0))
        except (TypeError, ValueError):
            continue
        product_id = str(entry.get("id") or "")
        if not product_id or quantity <= 0:
            continue
        size = entry.get("size") or None
        lines.append(CartLine(id=product_id, size=str(size) if size else None, quantity=quantity))
    return lines


def load_cart(request: Request) -> Cart:
    """Read the cart from the request cookie (empty if missing or tampered)."""
    raw = unsign_value(request.cookies.get(CART_COOKIE_NAME, ""))
    return Cart(lines=_parse_lines(raw))


def save_cart(response: Response, cart: Cart) -> None:
    if cart.is_empty():
        clear_cart_cookie(response)
        return
    response.set_cookie(
        key=CART_COOKIE_NAME,
        value=sign_value([line.to_dict() for line in cart.lines]),
        max_age=CART_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )


def clear_cart_cookie(response: Response) -> None:
    response.delete_cookie(key=CART_COOKIE_NAME, path="/")


# ---------------------------------------------------------------------------
# Validation against live inventory
# ---------------------------------------------------------------------------
def available_stock(
    inventory: Dict[str, Dict[str, Any]], product_id: str, size: Optional[str]
) -> int:
    item = inventory.get(product_id)
    if not item:
        return 0
    return int(item.get("inventory", {}).get(size or ONE_SIZE, 0) or 0)


def validate_cart(cart: Cart, inventory: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check every line against the product map and current stock.

    Unknown products and invalid sizes are dropped, quantities are capped
    to what is in stock.  Returns ``{"valid", "errors", "items", "cart"}``
    where ``cart`` is the corrected cart.
    """
    errors: List[str] = []
    fixed = Cart()

    for line in cart.lines:
        item = inventory.get(line.id)
        if line.id not in PRODUCTS or not item:
            errors.append(f"Product {line.id} not found")
            continue

        title = PRODUCTS[line.id]["title"]
        sizes = item.get("sizes") or []
        if sizes and line.size not in sizes:
            errors.append(f"Invalid size {line.size or 'none'} for {title}")
            continue
        if not sizes and line.size:
            errors.append(f"{title} does not come in sizes")
            continue

        stock = available_stock(inventory, line.id, line.size)
        if stock <= 0:
            errors.append(f"{title} is out of stock")
            continue

        quantity = min(line.quantity, stock)
        if quantity != line.quantity:
            errors.append(f"Only {quantity} of {title} available")
        fixed.lines.append(CartLine(id=line.id, size=line.size, quantity=quantity))

    return {
        "valid": not errors,
        "errors": errors,
        "items": [line.to_dict() for line in fixed.lines],
        "cart": fixed,
    }


def describe_cart(cart: Cart, inventory: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Build display rows (title, price, line total, stock) for templates."""
    rows = []
    for line in cart.lines:
        product = PRODUCTS.get(line.id, {})
        price = product.get("price", 0)
        rows.append(
            {
                "id": line.id,
                "size": line.size,
                "quantity": line.quantity,
                "title": product.get("title", f"Unknown Item ({line.id})"),
                "price": price,
                "line_total": round(price * line.quantity, 2),
                "available": available_stock(inventory, line.id, line.size),
            }
        )
    return rows
