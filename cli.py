# cli.py
import json
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from sdk.bakery_client import BakeryAPIError, BakeryClient

console = Console()
c = BakeryClient(base_url=os.environ.get("BAKERY_API_URL", "http://127.0.0.1:8000"))

status_message = "Ready"
product_cache: List[Dict[str, Any]] = []
session_user: Optional[Dict[str, Any]] = None

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#884400 #ffffff',
    'completion-menu.completion.current': 'bg:#aa6600 #000000',
    'scrollbar.background': 'bg:#aa8866',
    'scrollbar.button': 'bg:#222222',
})

STATUS_STYLE = {
    "PENDING": "yellow",
    "CONFIRMED": "cyan",
    "PREPARING": "cyan",
    "READY_FOR_PICKUP": "magenta",
    "COMPLETED": "green",
    "CANCELLED": "red",
}


def money(cents: int) -> str:
    return f"${(cents or 0) / 100:.2f}"


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]Nothing on the shelves[/italic yellow]")
        return

    table = Table(title="🥐 Today's bakes", box=box.ROUNDED, header_style="bold cyan",
                  title_style="bold magenta", show_lines=True)
    table.add_column("ID", style="dim", width=6)
    table.add_column("Name", style="bold", width=24)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Stock", justify="right", width=8)
    table.add_column("Category", width=15)

    for p in products:
        table.add_row(str(p["id"]), p["name"], money(p["price_cents"]), str(p["stock"]), p.get("category") or "-")
    console.print(table)


def show_cart(cart: Dict[str, Any]):
    items = cart.get("items", [])
    total = sum(it["price_cents"] * it["quantity"] for it in items)

    title = Text()
    title.append("🛒 Cart", style="bold")
    if session_user:
        title.append(f" - {session_user['email']}", style="bold cyan")
    title.append(f" - Total: {money(total)}", style="bold green")

    if not items:
        console.print(Panel("Your cart is empty", title=title, style="blue"))
        return

    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("Product", style="bold", width=28)
    table.add_column("Qty", justify="right", width=6)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Subtotal", justify="right", width=10)
    for it in items:
        table.add_row(it["name"], str(it["quantity"]), money(it["price_cents"]),
                      money(it["price_cents"] * it["quantity"]))
    console.print(Panel(table, title=title, border_style="blue"))


def show_orders(orders: List[Dict[str, Any]]):
    if not orders:
        console.print("[italic yellow]No orders found[/italic yellow]")
        return

    table = Table(title="📋 Orders", box=box.ROUNDED, header_style="bold yellow",
                  title_style="bold yellow", show_lines=True)
    table.add_column("ID", style="dim", width=6)
    table.add_column("Contents", width=36)
    table.add_column("Status", width=18)
    table.add_column("Total", justify="right", width=10)
    table.add_column("Next", width=24)

    for o in orders:
        contents = ", ".join(f"{it['name']} x{it['quantity']}" for it in o["items"][:3])
        if len(o["items"]) > 3:
            contents += f" +{len(o['items']) - 3} more"
        style = STATUS_STYLE.get(o["status"], "white")
        table.add_row(str(o["id"]), contents or "No items", f"[{style}]{o['status']}[/{style}]",
                      money(o["total_cents"]), ", ".join(o.get("next_statuses", [])) or "-")
    console.print(table)


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """Run an SDK call behind a spinner; API errors land in the status panel."""
    global status_message
    try:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                      transient=True) as progress:
            progress.add_task(description="Talking to the bakery...", total=None)
            result = fn(*args, **kwargs)
    except BakeryAPIError as e:
        status_message = f"Error: {e.detail} ({e.status_code})"
        console.print(show_status(status_message, False))
        return None
    except OSError as e:
        status_message = f"Error: {e}"
        console.print(show_status(status_message, False))
        return None

    if success_msg:
        status_message = success_msg
        console.print(show_status(success_msg, True))
    return result


def get_product_completer():
    global product_cache
    if not product_cache:
        product_cache = try_api(c.list_products) or []
    return WordCompleter([str(p["id"]) for p in product_cache], meta_dict={
        str(p["id"]): p["name"] for p in product_cache
    })


def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_product_id() -> Optional[int]:
    raw = prompt_with_autocomplete("Product ID", completer=get_product_completer()).strip()
    if not raw.isdigit():
        console.print("[red]Please enter a numeric product ID.[/red]")
        return None
    return int(raw)


def require_login() -> bool:
    if session_user is None:
        console.print(show_status("Log in first (option 1)", False))
        return False
    return True


def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)
    who = session_user["email"] if session_user else "guest"
    header.add_row("🥖 Bakery console", f"[bold blue]Signed in as {who}[/bold blue]",
                   f"[dim]{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]")
    return Panel(header, style="bold blue")


# ---------------------------
# Actions
# ---------------------------
def do_login():
    global session_user
    email = prompt_with_autocomplete("Email")
    password = Prompt.ask("Password", password=True)
    data = try_api(c.login, email, password, success_msg=f"Logged in as {email}")
    if data:
        session_user = data


def do_merge_guest_cart():
    path = prompt_with_autocomplete("Guest cart JSON file", default="guest_cart.json")
    try:
        with open(path) as fh:
            items = json.load(fh)
    except (OSError, ValueError) as e:
        console.print(show_status(f"Could not read {path}: {e}", False))
        return
    resp = try_api(c.sync_cart, items, success_msg="Guest cart merged")
    if resp:
        console.print(f"[dim]{resp['message']}[/dim]")
        show_cart(resp)


def do_place_order():
    slots = try_api(c.list_pickup_slots) or []
    slot_id = None
    if slots:
        for s in slots:
            console.print(f"  [cyan]{s['id']}[/cyan] {s['start_time']} -> {s['end_time']}")
        raw = Prompt.ask("Pickup slot ID (blank for none)", default="")
        slot_id = int(raw) if raw.isdigit() else None
    note = Prompt.ask("Special instructions", default="") or None
    order = try_api(c.place_order, pickup_slot_id=slot_id, special_instructions=note)
    if order:
        console.print(Panel.fit(
            f"[green]Order placed![/green]\nOrder ID: [bold]{order['id']}[/bold]\n"
            f"Total: [bold]{money(order['total_cents'])}[/bold]",
            title="✅ Order Confirmation",
        ))


def do_change_status():
    order_id = IntPrompt.ask("Order ID")
    order = try_api(c.get_order, order_id)
    if not order:
        return
    choices = order.get("next_statuses") or []
    if not choices:
        console.print(f"[yellow]Order {order_id} is {order['status']}; nothing further to do.[/yellow]")
        return
    status = Prompt.ask("New status", choices=choices, default=choices[0])
    resp = try_api(c.set_order_status, order_id, status, success_msg=f"Order {order_id} is now {status}")
    if resp:
        show_orders([resp])


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message, product_cache, session_user

    console.clear()
    console.print(create_header())
    product_cache = try_api(c.list_products) or []

    while True:
        if status_message:
            console.print(show_status(status_message, not status_message.startswith("Error")))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        for row in [
            ("1", "🔑 Log in", "6", "🔀 Merge guest cart"),
            ("2", "🥐 List products", "7", "✅ Place order"),
            ("3", "🛒 View cart", "8", "📋 List orders"),
            ("4", "➕ Add to cart", "9", "❌ Cancel order"),
            ("5", "➖ Remove from cart", "10", "🔁 Change order status"),
            ("", "", "q", "👋 Quit"),
        ]:
            menu_table.add_row(*row)
        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(1, 11)] + ["q", "quit", "exit"]),
        ).strip()

        if choice == "1":
            do_login()
            console.print(create_header())

        elif choice == "2":
            products = try_api(c.list_products, success_msg="Products loaded")
            if products is not None:
                product_cache = products
                show_products(products)

        elif choice == "3" and require_login():
            cart = try_api(c.view_cart)
            if cart is not None:
                show_cart(cart)

        elif choice == "4" and require_login():
            pid = ask_product_id()
            if pid is not None:
                qty = IntPrompt.ask("Quantity", default=1)
                resp = try_api(c.add_to_cart, pid, qty, success_msg=f"Added {qty} of product {pid}")
                if resp:
                    show_cart(resp)

        elif choice == "5" and require_login():
            pid = ask_product_id()
            if pid is not None:
                resp = try_api(c.remove_from_cart, pid, success_msg=f"Product {pid} removed from cart")
                if resp:
                    show_cart(resp)

        elif choice == "6" and require_login():
            do_merge_guest_cart()

        elif choice == "7" and require_login():
            do_place_order()

        elif choice == "8" and require_login():
            orders = try_api(c.list_orders, success_msg="Orders loaded")
            if orders is not None:
                show_orders(orders)

        elif choice == "9" and require_login():
            order_id = IntPrompt.ask("Order ID to cancel")
            if Confirm.ask(f"Cancel order {order_id}?"):
                resp = try_api(c.cancel_order, order_id, success_msg=f"Order {order_id} cancelled")
                if resp:
                    show_orders([resp])

        elif choice == "10" and require_login():
            do_change_status()

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Thanks for stopping by! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


if __name__ == "__main__":
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
