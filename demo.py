#!/usr/bin/env python
# Walks a shopper through guest-cart merge, checkout and cancellation.
# Needs a running API and an admin account (BAKERY_ADMIN_EMAIL / BAKERY_ADMIN_PASSWORD).
import os
import uuid

from sdk.bakery_client import BakeryClient

BASE_URL = os.environ.get("BAKERY_API_URL", "http://127.0.0.1:8000")


def main():
    admin = BakeryClient(base_url=BASE_URL)
    admin.login(os.environ["BAKERY_ADMIN_EMAIL"], os.environ["BAKERY_ADMIN_PASSWORD"])

    # -----------------------------
    # Stock the shelves
    # -----------------------------
    print("Baking products...")
    loaf = admin.create_product("Sourdough", 650, 5, "bread")
    bun = admin.create_product("Cardamom bun", 300, 12, "pastry")
    print(loaf)
    print(bun)

    # -----------------------------
    # Shopper signs up with a guest cart in hand
    # -----------------------------
    shopper = BakeryClient(base_url=BASE_URL)
    email = f"demo-{uuid.uuid4().hex[:8]}@example.com"
    shopper.register(email, "secret123", name="Demo shopper")
    shopper.login(email, "secret123")
    shopper.add_to_cart(bun["id"], 1)

    print("\nMerging guest cart...")
    guest_cart = [{"id": bun["id"], "quantity": 2}, {"product_id": loaf["id"], "quantity": 1.7}]
    print(shopper.sync_cart(guest_cart))

    # -----------------------------
    # Checkout and cancel
    # -----------------------------
    print("\nPlacing order...")
    order = shopper.place_order(special_instructions="Please slice the loaf")
    print(order)
    print("Stock after checkout:", shopper.get_product(loaf["id"])["stock"], shopper.get_product(bun["id"])["stock"])

    print("\nCancelling order...")
    print(shopper.cancel_order(order["id"]))
    print("Stock after cancel:", shopper.get_product(loaf["id"])["stock"], shopper.get_product(bun["id"])["stock"])

    print("\nListing orders...")
    print(shopper.list_orders())


if __name__ == "__main__":
    main()
