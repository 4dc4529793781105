# cli.py
import argparse
import os
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import IntPrompt, Confirm
from rich import box

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from sdk.storeclient import StoreClient, cart_line

console = Console()

# Custom prompt style for prompt_toolkit
custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


# ---------------------------
# Argument helpers
# ---------------------------
def parse_item(raw: str) -> Dict[str, Any]:
    """PRODUCT_ID[:QTY[:SIZE[:COLOR]]], empty parts mean "not selected"."""
    parts = raw.split(":", 3)
    parts += [""] * (4 - len(parts))
    try:
        product_id = int(parts[0])
        quantity = int(parts[1]) if parts[1] else 1
    except ValueError:
        raise argparse.ArgumentTypeError(f"bad item {raw!r}, expected PRODUCT_ID[:QTY[:SIZE[:COLOR]]]")
    return cart_line(product_id, quantity, parts[2] or None, parts[3] or None)


# ---------------------------
# Display helpers
# ---------------------------
def _axis(value: Optional[str]) -> str:
    return value if value is not None else "[dim]-[/dim]"


def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title="📦 Products Catalog",
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=6)
    table.add_column("Name", style="bold", width=20)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Sizes", width=14)
    table.add_column("Colors", width=24)
    table.add_column("Stock", justify="right", width=8)

    for p in products:
        price = float(p.get("price", 0))
        discount = float(p.get("discount", 0))
        price_text = f"€{price:.2f}" + (f" [green]-{discount:g}%[/green]" if discount else "")
        stock_style = "green" if p.get("in_stock") else "red"
        table.add_row(
            str(p.get("id", "N/A")),
            p.get("name", "N/A"),
            price_text,
            ", ".join(p.get("sizes", [])) or "-",
            ", ".join(p.get("colors", [])) or "-",
            f"[{stock_style}]{p.get('stock', 0)}[/{stock_style}]",
        )
    console.print(table)


def show_variants(variants: List[Dict[str, Any]], title: str = "🧩 Variants"):
    if not variants:
        console.print("[italic yellow]No variants found[/italic yellow]")
        return

    table = Table(title=title, box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("Variant ID", style="dim", width=28)
    table.add_column("Size", width=10)
    table.add_column("Color", width=18)
    table.add_column("Stock", justify="right", width=8)

    for v in variants:
        stock = v.get("stock", 0)
        style = "red" if stock == 0 else ("yellow" if stock <= 2 else "green")
        table.add_row(
            v.get("variant_id", "N/A") + (" [dim](product)[/dim]" if v.get("implicit") else ""),
            _axis(v.get("size")),
            _axis(v.get("color")),
            f"[{style}]{stock}[/{style}]",
        )
    console.print(table)


def show_failures(failures: List[Dict[str, Any]]):
    table = Table(title="❌ Unavailable items", box=box.ROUNDED, header_style="bold red", show_lines=True)
    table.add_column("Line", justify="right", width=6)
    table.add_column("Product", width=8)
    table.add_column("Selection", width=28)
    table.add_column("Problem", width=34)

    for f in failures:
        sel = f.get("selection") or {}
        selection = " / ".join(v for v in (sel.get("size"), sel.get("color")) if v) or "-"
        reason = f.get("reason")
        if reason == "InsufficientStock":
            problem = f"only {f.get('available')} available, {f.get('requested')} requested"
        elif reason == "OutOfStock":
            problem = "out of stock"
        else:
            problem = "no such product/variant"
        table.add_row(str(f.get("line_index", "?") + 1), str(f.get("product_id")), selection, problem)
    console.print(table)


def show_quote(quote: Dict[str, Any]):
    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("Product", style="bold", width=30)
    table.add_column("Qty", justify="right", width=6)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Subtotal", justify="right", width=10)

    for line in quote.get("lines", []):
        label = line.get("name", "?")
        extras = [v for v in (line.get("selected_size"), line.get("selected_color")) if v]
        if extras:
            label += f" ({' / '.join(extras)})"
        table.add_row(label, str(line.get("quantity")), f"€{line.get('unit_price')}", f"€{line.get('subtotal')}")

    table.add_row("[dim]Shipping[/dim]", "", "", f"€{quote.get('shipping')}")
    table.add_row("[bold]Total[/bold]", str(quote.get("item_count")), "", f"[bold green]€{quote.get('total')}[/bold green]")
    console.print(Panel(table, title=f"🛒 Quote ({quote.get('delivery_method')})", border_style="blue"))


def show_report(report: Dict[str, Any]):
    style = "green" if report.get("healthy") else "yellow"
    lines = [f"[{style}]{'healthy' if report.get('healthy') else 'needs attention'}[/{style}]",
             f"products: {report.get('product_count')}  variants: {report.get('variant_count')}"]
    for key in ("missing_product_columns", "missing_variant_columns", "orphan_variant_rows", "duplicate_variants",
                "variant_id_mismatches", "stock_mismatches", "missing_combinations", "undeclared_variants"):
        if report.get(key):
            lines.append(f"[bold]{key.replace('_', ' ')}[/bold]: {report[key]}")
    console.print(Panel("\n".join(lines), title="🔍 Catalog diagnostics", border_style=style))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner.
    Returns the raw result, or None after printing the error.
    """
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            console.print(show_status(success_msg, True))
        return result
    except Exception as e:
        console.print(show_status(f"Error: {e}", False))
        return None


def prompt_with_autocomplete(message: str, options: List[str], default: str = "") -> str:
    completer = WordCompleter(options, ignore_case=True, sentence=True)
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default).strip()


# ---------------------------
# Commands
# ---------------------------
def cmd_pick(c: StoreClient, product_id: int):
    """Interactively choose size/color for a product and check the stock."""
    product = try_api(c.get_product, product_id)
    if not product:
        return
    show_products([product])

    size = color = None
    if product.get("sizes"):
        size = prompt_with_autocomplete(f"Size ({', '.join(product['sizes'])}):", product["sizes"]) or None
    if product.get("colors"):
        color = prompt_with_autocomplete(f"Color ({', '.join(product['colors'])}):", product["colors"]) or None

    variant = try_api(c.resolve_variant, product_id, size, color)
    if variant is None:
        console.print(Panel.fit("[red]That combination is not available[/red]", title="❌ No variant"))
        return
    show_variants([variant], title="Selected variant")

    if variant.get("stock", 0) > 0 and Confirm.ask("Check a quantity?"):
        qty = IntPrompt.ask("Quantity", default=1)
        result = try_api(c.validate_cart, [cart_line(product_id, qty, size, color)])
        if result and result.get("ok"):
            console.print(show_status(f"{qty} x {variant['variant_id']} available", True))
        elif result:
            show_failures(result.get("failures", []))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="sheetstore CLI")
    parser.add_argument("--base-url", default=os.getenv("STORE_URL", "http://127.0.0.1:8085"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    lp = subparsers.add_parser("products", help="List products")
    lp.add_argument("--available-only", action="store_true", help="Show only products in stock")

    lv = subparsers.add_parser("variants", help="List a product's variants")
    lv.add_argument("--product-id", type=int, required=True)
    lv.add_argument("--available-only", action="store_true")
    lv.add_argument("--low-stock", action="store_true")

    rv = subparsers.add_parser("resolve", help="Find the variant for a size/color selection")
    rv.add_argument("--product-id", type=int, required=True)
    rv.add_argument("--size")
    rv.add_argument("--color")

    item_help = "PRODUCT_ID[:QTY[:SIZE[:COLOR]]], repeatable"
    va = subparsers.add_parser("validate", help="Check stock for a cart")
    va.add_argument("--item", type=parse_item, action="append", required=True, help=item_help)
    va.add_argument("--delivery", choices=["delivery", "pickup", "pos"], default="pickup")

    co = subparsers.add_parser("checkout", help="Place an order")
    co.add_argument("--item", type=parse_item, action="append", required=True, help=item_help)
    co.add_argument("--name", required=True)
    co.add_argument("--email", default="")
    co.add_argument("--phone", default="")
    co.add_argument("--address", default="")
    co.add_argument("--delivery", choices=["delivery", "pickup", "pos"], default="pickup")
    co.add_argument("--pos", action="store_true", help="Point-of-sale order")

    subparsers.add_parser("diagnose", help="Check the spreadsheet for inconsistencies")
    subparsers.add_parser("setup-variants", help="Generate variant rows for products that have none")

    pk = subparsers.add_parser("pick", help="Choose a variant interactively")
    pk.add_argument("--product-id", type=int, required=True)

    sv = subparsers.add_parser("serve", help="Run the store API")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8085)
    return parser


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        import uvicorn
        uvicorn.run("sheetstore.main:app", host=args.host, port=args.port)
        return

    c = StoreClient(base_url=args.base_url)

    if args.command == "products":
        products = try_api(c.list_products, args.available_only)
        if products is not None:
            show_products(products)

    elif args.command == "variants":
        variants = try_api(c.list_variants, args.product_id, args.available_only, args.low_stock)
        if variants is not None:
            show_variants(variants)

    elif args.command == "resolve":
        variant = try_api(c.resolve_variant, args.product_id, args.size, args.color)
        if variant:
            show_variants([variant], title="Resolved variant")
        else:
            console.print("[yellow]No matching variant[/yellow]")

    elif args.command == "validate":
        result = try_api(c.validate_cart, args.item)
        if result is None:
            return
        if result.get("ok"):
            console.print(show_status("Every item is available", True))
            quote = try_api(c.quote, args.item, args.delivery)
            if quote:
                show_quote(quote)
        else:
            show_failures(result.get("failures", []))

    elif args.command == "checkout":
        customer = {"name": args.name, "email": args.email, "phone": args.phone, "address": args.address}
        channel = "pos" if args.pos else "web"
        delivery = "pos" if args.pos else args.delivery
        resp = try_api(c.checkout, args.item, customer, delivery, channel)
        if resp is None:
            return
        body = resp.json()
        if resp.status_code == 200:
            console.print(Panel.fit(
                f"[green]Order placed successfully![/green]\n"
                f"Order ID: [bold]{body.get('order_id')}[/bold]\n"
                f"Total: [bold]€{(body.get('quote') or {}).get('total')}[/bold]",
                title="✅ Order Confirmation"
            ))
        elif resp.status_code == 409 and isinstance(body.get("detail"), dict):
            show_failures(body["detail"].get("failures", []))
        else:
            console.print(Panel.fit(f"[red]Order failed:[/red] {body}", title="❌ Order Failed"))

    elif args.command == "diagnose":
        report = try_api(c.diagnostics)
        if report:
            show_report(report)

    elif args.command == "setup-variants":
        resp = try_api(c.setup_variants, success_msg="Variant sheet checked")
        if resp is not None:
            created = resp.get("created", [])
            show_variants(created, title="Created variants")

    elif args.command == "pick":
        cmd_pick(c, args.product_id)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
