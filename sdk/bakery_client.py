# sdk/bakery_client.py
import json
from typing import Any, Dict, List, Optional

import httpx
import requests
from rich import print


class BakeryAPIError(Exception):
    """Non-2xx answer from the API; `detail` is the server's message."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _detail(r) -> Any:
    try:
        return r.json().get("detail", r.text)
    except ValueError:
        return r.text


class BakeryClient:
    """Thin wrapper over the storefront REST API.

    `session` defaults to a requests.Session; anything with the same
    request/headers surface (e.g. fastapi's TestClient) works too.
    """

    def __init__(self, base_url: str = "http://localhost:8000", token: Optional[str] = None,
                 timeout: int = 10, session=None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token = None
        if token:
            self._use_token(token)

    def _use_token(self, token: str):
        self.token = token
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _call(self, method: str, path: str, **kwargs) -> Any:
        r = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        if r.status_code >= 400:
            raise BakeryAPIError(r.status_code, _detail(r))
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    # Auth
    def register(self, email: str, password: str, name: Optional[str] = None, phone: Optional[str] = None):
        return self._call("POST", "/auth/register", json={
            "email": email, "password": password, "name": name, "phone": phone,
        })

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._call("POST", "/auth/login", json={"email": email, "password": password})
        self._use_token(data["token"])
        return data

    def me(self):
        return self._call("GET", "/auth/me")

    # Catalog
    def list_products(self) -> List[Dict[str, Any]]:
        return self._call("GET", "/products")

    def get_product(self, product_id: int):
        return self._call("GET", f"/products/{product_id}")

    def create_product(self, name: str, price_cents: int, stock: int, category: str, **extra):
        body = {"name": name, "price_cents": price_cents, "stock": stock, "category": category}
        body.update(extra)
        return self._call("POST", "/products", json=body)

    def list_pickup_slots(self, on_date: Optional[str] = None):
        params = {"date": on_date} if on_date else None
        return self._call("GET", "/pickup-slots", params=params)

    # Cart
    def view_cart(self):
        return self._call("GET", "/cart")

    def add_to_cart(self, product_id: int, quantity: int = 1):
        return self._call("POST", "/cart/add", json={"product_id": product_id, "quantity": quantity})

    def update_cart_item(self, product_id: int, quantity: int):
        return self._call("PUT", "/cart/update", json={"product_id": product_id, "quantity": quantity})

    def remove_from_cart(self, product_id: int):
        return self._call("DELETE", f"/cart/items/{product_id}")

    def clear_cart(self):
        return self._call("DELETE", "/cart/clear")

    def sync_cart(self, items: List[Dict[str, Any]]):
        """Merge a guest cart (as kept in browser storage) into the logged-in cart."""
        return self._call("POST", "/cart/sync", json={"items": items})

    async def sync_cart_async(self, items: List[Dict[str, Any]]):
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(f"{self.base_url}/cart/sync", json={"items": items}, headers=headers)
        if r.status_code >= 400:
            raise BakeryAPIError(r.status_code, _detail(r))
        return r.json()

    # Orders
    def place_order(self, items: Optional[List[Dict[str, int]]] = None, pickup_slot_id: Optional[int] = None,
                    special_instructions: Optional[str] = None, guest: Optional[Dict[str, str]] = None):
        body: Dict[str, Any] = {}
        if items:
            body["items"] = items
        if pickup_slot_id is not None:
            body["pickup_slot_id"] = pickup_slot_id
        if special_instructions:
            body["special_instructions"] = special_instructions
        if guest:
            body["guest"] = guest
        return self._call("POST", "/orders", json=body)

    def list_orders(self, status: Optional[str] = None):
        params = {"status": status} if status else None
        return self._call("GET", "/orders", params=params)

    def get_order(self, order_id: int):
        return self._call("GET", f"/orders/{order_id}")

    def set_order_status(self, order_id: int, status: str):
        return self._call("PUT", f"/orders/{order_id}", json={"status": status})

    def cancel_order(self, order_id: int):
        return self.set_order_status(order_id, "CANCELLED")


if __name__ == "__main__":
    import argparse
    import os

    parser = argparse.ArgumentParser(description="Bakery storefront client")
    parser.add_argument("--base-url", default=os.environ.get("BAKERY_API_URL", "http://127.0.0.1:8000"))
    parser.add_argument("--token", default=os.environ.get("BAKERY_TOKEN"), help="Bearer token from `login`")
    subparsers = parser.add_subparsers(dest="command", required=True)

    lg = subparsers.add_parser("login", help="Log in and print the token")
    lg.add_argument("--email", required=True)
    lg.add_argument("--password", required=True)

    subparsers.add_parser("list-products", help="List products on sale")
    subparsers.add_parser("view-cart", help="Show the cart")

    add = subparsers.add_parser("add-to-cart", help="Add a product to the cart")
    add.add_argument("--product-id", type=int, required=True)
    add.add_argument("--qty", type=int, default=1)

    rm = subparsers.add_parser("remove-from-cart", help="Drop a product from the cart")
    rm.add_argument("--product-id", type=int, required=True)

    sync = subparsers.add_parser("sync-cart", help="Merge a guest cart JSON file into the cart")
    sync.add_argument("--file", required=True, help='JSON array like [{"product_id": 1, "quantity": 2}]')

    po = subparsers.add_parser("place-order", help="Check out the cart")
    po.add_argument("--pickup-slot", type=int)
    po.add_argument("--note")

    subparsers.add_parser("list-orders", help="List orders")

    st = subparsers.add_parser("set-status", help="Change an order's status")
    st.add_argument("--order-id", type=int, required=True)
    st.add_argument("--status", required=True)

    args = parser.parse_args()
    c = BakeryClient(base_url=args.base_url, token=args.token)

    try:
        if args.command == "login":
            print(c.login(args.email, args.password))
        elif args.command == "list-products":
            print(c.list_products())
        elif args.command == "view-cart":
            print(c.view_cart())
        elif args.command == "add-to-cart":
            print(c.add_to_cart(args.product_id, args.qty))
        elif args.command == "remove-from-cart":
            print(c.remove_from_cart(args.product_id))
        elif args.command == "sync-cart":
            with open(args.file) as fh:
                print(c.sync_cart(json.load(fh)))
        elif args.command == "place-order":
            print(c.place_order(pickup_slot_id=args.pickup_slot, special_instructions=args.note))
        elif args.command == "list-orders":
            print(c.list_orders())
        elif args.command == "set-status":
            print(c.set_order_status(args.order_id, args.status))
    except BakeryAPIError as e:
        print(f"[red]{e}[/red]")
        raise SystemExit(1)
