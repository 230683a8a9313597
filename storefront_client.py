"""
Storefront client: cart, wishlist and checkout state for one shopper.

Anonymous shoppers keep their cart and wishlist in a local key/value store
(anything implementing MutableMapping). Once a token is present the server
becomes the source of truth and every server response replaces local state.

Removals, quantity changes and clears are applied optimistically. Each one is
recorded as a Mutation that ends either `committed` or `rolled_back`; a
rollback re-fetches the authoritative list from the server.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Literal, MutableMapping, Optional, Union

import httpx
import requests
from pydantic import BaseModel, ValidationError

import pricing

logger = logging.getLogger("aether.client")

DEFAULT_THUMBNAIL = "/images/default.jpg"


class StorefrontError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiClient:
    """Thin JSON wrapper around a requests or httpx session (TestClient included).

    The bearer token is passed on every call; nothing is stored on the session.
    """

    def __init__(self, session=None, base_url: str = ""):
        self.session = session if session is not None else requests.Session()
        self.base_url = base_url.rstrip("/")

    def request(self, method: str, path: str, token: Optional[str] = None, json: Any = None) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = self.session.request(method, f"{self.base_url}{path}", json=json, headers=headers)
        except (requests.RequestException, httpx.TransportError) as exc:
            raise StorefrontError(f"Network error: {exc}") from exc
        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            raise StorefrontError(message or f"Request failed ({response.status_code})", response.status_code)
        return data

    def get(self, path: str, token: Optional[str] = None) -> Any:
        return self.request("GET", path, token)

    def post(self, path: str, token: Optional[str] = None, json: Any = None) -> Any:
        return self.request("POST", path, token, json)

    def put(self, path: str, token: Optional[str] = None, json: Any = None) -> Any:
        return self.request("PUT", path, token, json)

    def delete(self, path: str, token: Optional[str] = None) -> Any:
        return self.request("DELETE", path, token)


class LineItem(BaseModel):
    id: str
    product_id: str
    name: str = "Untitled Product"
    price: float = 0
    quantity: int = 1
    size: str = ""
    thumbnail: str = DEFAULT_THUMBNAIL
    slug: str = ""


class Mutation(BaseModel):
    action: str
    target: str
    state: Literal["pending", "committed", "rolled_back"] = "pending"
    error: Optional[str] = None


def product_id_of(product: Dict[str, Any]) -> str:
    pid = product.get("id") or product.get("_id") or product.get("product_id")
    if not pid:
        raise StorefrontError("Product has no id")
    return str(pid)


def local_line_id(product_id: str, size: str = "") -> str:
    return f"{product_id}:{size}" if size else product_id


def line_from_product(line_id: str, product: Dict[str, Any], quantity: int = 1, size: str = "") -> LineItem:
    images = product.get("images") or []
    return LineItem(
        id=line_id,
        product_id=product_id_of(product),
        name=product.get("name") or "Untitled Product",
        price=float(product.get("price") or 0),
        quantity=quantity,
        size=size or "",
        thumbnail=product.get("thumbnail") or (images[0] if images else DEFAULT_THUMBNAIL),
        slug=product.get("slug") or "",
    )


class _ReconciledList(ABC):
    storage_key = ""
    load_error = "Could not load your list."

    def __init__(self, api: ApiClient, token: Optional[str] = None, storage: Optional[MutableMapping] = None):
        self.api = api
        self.token = token
        self.storage = storage if storage is not None else {}
        self.items: List[LineItem] = []
        self.error: Optional[str] = None
        self.mutations: List[Mutation] = []
        self.refresh()

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    @abstractmethod
    def _fetch(self) -> Any:
        ...

    @abstractmethod
    def _apply_server(self, data: Any) -> None:
        ...

    def _fail(self, message: str, exc: StorefrontError) -> None:
        self.error = message
        logger.warning("%s (%s)", message, exc.message)

    def _load_local(self) -> None:
        raw = self.storage.get(self.storage_key) or []
        try:
            self.items = [LineItem(**r) for r in raw]
        except (TypeError, ValidationError):
            self.items = []

    def _save_local(self) -> None:
        if not self.authenticated:
            self.storage[self.storage_key] = [it.model_dump() for it in self.items]

    def refresh(self) -> List[LineItem]:
        if not self.authenticated:
            self._load_local()
            return self.items
        try:
            self._apply_server(self._fetch())
        except StorefrontError as exc:
            self._fail(self.load_error, exc)
            self.items = []
        return self.items

    def sign_in(self, token: str) -> List[LineItem]:
        # Server state replaces whatever the anonymous session held.
        self.token = token
        return self.refresh()

    def sign_out(self) -> List[LineItem]:
        self.token = None
        return self.refresh()

    def _optimistic(self, action: str, target: str, apply: Callable[[], None],
                    commit: Callable[[], Any], failure_message: str) -> Mutation:
        mutation = Mutation(action=action, target=target)
        self.mutations.append(mutation)
        apply()
        if not self.authenticated:
            self._save_local()
            mutation.state = "committed"
            return mutation
        try:
            data = commit()
        except StorefrontError as exc:
            mutation.state = "rolled_back"
            mutation.error = exc.message
            self._fail(failure_message, exc)
            self.refresh()
            return mutation
        self._apply_server(data)
        mutation.state = "committed"
        return mutation


class CartSession(_ReconciledList):
    storage_key = "cart"
    load_error = "Could not load your cart."

    def _fetch(self) -> Any:
        return self.api.get("/api/cart", self.token)

    def _apply_server(self, data: Any) -> None:
        items = []
        for line in (data or {}).get("items", []):
            product = line.get("product")
            if product is None:
                items.append(LineItem(
                    id=line["id"],
                    product_id="",
                    name="Product no longer available",
                    quantity=line.get("quantity", 1),
                    size=line.get("size") or "",
                ))
            else:
                items.append(line_from_product(line["id"], product, line.get("quantity", 1), line.get("size") or ""))
        self.items = items

    @property
    def summary(self) -> Dict[str, Any]:
        return pricing.summarize(it.model_dump() for it in self.items)

    def add_item(self, product: Dict[str, Any], quantity: int = 1, size: str = "") -> List[LineItem]:
        product_id = product_id_of(product)
        quantity = max(1, int(quantity or 1))
        size = size or ""
        if not self.authenticated:
            for it in self.items:
                if it.product_id == product_id and it.size == size:
                    it.quantity += quantity
                    break
            else:
                self.items.append(line_from_product(local_line_id(product_id, size), product, quantity, size))
            self._save_local()
            return self.items
        try:
            data = self.api.post("/api/cart", self.token, json={"product_id": product_id, "quantity": quantity, "size": size})
        except StorefrontError as exc:
            self._fail("Failed to add item to cart. Please try again.", exc)
            return self.items
        self._apply_server(data)
        return self.items

    def remove_item(self, line_id: str) -> Mutation:
        def apply():
            self.items = [it for it in self.items if it.id != line_id]

        return self._optimistic(
            "remove", line_id, apply,
            lambda: self.api.delete(f"/api/cart/item/{line_id}", self.token),
            "Failed to remove item.",
        )

    def update_quantity(self, line_id: str, quantity: int) -> Mutation:
        quantity = max(1, int(quantity))

        def apply():
            for it in self.items:
                if it.id == line_id:
                    it.quantity = quantity

        return self._optimistic(
            "update_quantity", line_id, apply,
            lambda: self.api.put(f"/api/cart/item/{line_id}", self.token, json={"quantity": quantity}),
            "Failed to update quantity.",
        )

    def clear(self) -> Mutation:
        def apply():
            self.items = []

        return self._optimistic(
            "clear", "cart", apply,
            lambda: self.api.delete("/api/cart", self.token),
            "Failed to clear cart.",
        )


class WishlistSession(_ReconciledList):
    storage_key = "wishlist"
    load_error = "Could not load your wishlist."

    def _fetch(self) -> Any:
        return self.api.get("/api/wishlist", self.token)

    def _apply_server(self, data: Any) -> None:
        self.items = [line_from_product(product_id_of(p), p) for p in (data or {}).get("products", [])]

    def contains(self, product_id: str) -> bool:
        return any(it.product_id == product_id for it in self.items)

    def add(self, product: Dict[str, Any]) -> List[LineItem]:
        product_id = product_id_of(product)
        if not self.authenticated:
            if not self.contains(product_id):
                self.items.append(line_from_product(product_id, product))
                self._save_local()
            return self.items
        try:
            data = self.api.post(f"/api/wishlist/{product_id}", self.token)
        except StorefrontError as exc:
            self._fail("Failed to add item to wishlist.", exc)
            return self.items
        self._apply_server(data)
        return self.items

    def remove(self, product_id: str) -> Mutation:
        def apply():
            self.items = [it for it in self.items if it.product_id != product_id]

        return self._optimistic(
            "remove", product_id, apply,
            lambda: self.api.delete(f"/api/wishlist/{product_id}", self.token),
            "Failed to remove from wishlist.",
        )


CheckoutState = Literal["intent-created", "pending", "paid", "pending-cod"]


def checkout_line(item: Union[LineItem, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(item, LineItem):
        return {"product_id": item.product_id, "quantity": item.quantity, "size": item.size}
    return {"product_id": product_id_of(item), "quantity": int(item.get("quantity", 1)), "size": item.get("size") or ""}


class Checkout:
    """One checkout attempt: intent-created -> pending -> paid, or -> pending-cod."""

    def __init__(self, api: ApiClient, token: str):
        self.api = api
        self.token = token
        self.state: CheckoutState = "intent-created"
        self.order: Optional[Dict[str, Any]] = None
        self.gateway_order: Optional[Dict[str, Any]] = None
        self.key: Optional[str] = None
        self.error: Optional[str] = None

    def _payload(self, items: Iterable[Union[LineItem, Dict[str, Any]]], shipping: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {"items": [checkout_line(it) for it in items], "shipping": shipping or {}}

    def start_razorpay(self, items, shipping=None) -> Dict[str, Any]:
        if self.state != "intent-created":
            raise StorefrontError(f"Checkout already {self.state}")
        try:
            data = self.api.post("/api/payments/razorpay/order", self.token, json=self._payload(items, shipping))
        except StorefrontError as exc:
            self.error = exc.message
            raise
        self.order = data["order"]
        self.gateway_order = data["razorpay_order"]
        self.key = data.get("key")
        self.state = "pending"
        return data

    def confirm(self, callback: Dict[str, str]) -> Dict[str, Any]:
        """Forward the gateway's success callback for signature verification."""
        if self.state != "pending" or self.order is None:
            raise StorefrontError("No pending payment to confirm")
        payload = {
            "razorpay_order_id": callback.get("razorpay_order_id"),
            "razorpay_payment_id": callback.get("razorpay_payment_id"),
            "razorpay_signature": callback.get("razorpay_signature"),
            "order_id": self.order["id"],
        }
        try:
            data = self.api.post("/api/payments/razorpay/verify", json=payload)
        except StorefrontError as exc:
            self.error = exc.message
            raise
        self.order = data["order"]
        self.state = "paid"
        self.error = None
        return self.order

    def report_failure(self, reason: Optional[str] = None) -> str:
        # The order stays pending on the server.
        self.error = reason or "Payment failed. Please try again."
        logger.warning("Payment failed for order %s: %s", (self.order or {}).get("id"), self.error)
        return self.error

    def place_cod(self, items, shipping=None) -> Dict[str, Any]:
        if self.state != "intent-created":
            raise StorefrontError(f"Checkout already {self.state}")
        try:
            data = self.api.post("/api/payments/cod/order", self.token, json=self._payload(items, shipping))
        except StorefrontError as exc:
            self.error = exc.message
            raise
        self.order = data["order"]
        self.state = "pending-cod"
        return self.order
