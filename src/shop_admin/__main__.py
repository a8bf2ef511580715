"""Entry point for the shop admin CLI."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from shop_admin.admin import AdminState
from shop_admin.api.service import ApiService
from shop_admin.config import Settings, get_settings
from shop_admin.log import setup_logging
from shop_admin.schemas.catalog import Configuration, Product
from shop_admin.schemas.dashboard import DashboardSummary
from shop_admin.session import SessionState

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shop-admin",
        description="Shop admin - manage the catalog from the command line",
    )
    parser.add_argument("--api-url", help="Base URL of the shop API")
    parser.add_argument("--log-dir", type=Path, help="Write JSON-lines logs to this directory")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in and store the access token")
    login.add_argument("--username", "-u", required=True)
    login.add_argument("--password", "-p", help="Prompted for when omitted")

    sub.add_parser("logout", help="Forget the stored access token")
    sub.add_parser("whoami", help="Show the signed-in user")
    sub.add_parser("config", help="Show the shop configuration")
    sub.add_parser("dashboard", help="Show dashboard statistics")

    products = sub.add_parser("products", help="List products")
    products.add_argument("--category", help="Only products in this category")

    delete = sub.add_parser("delete-product", help="Delete a product by id")
    delete.add_argument("product_id")
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    overrides: dict[str, Any] = {}
    if args.api_url:
        overrides["api_url"] = args.api_url.rstrip("/")
    if args.log_dir:
        overrides["log_dir"] = args.log_dir
    return replace(settings, **overrides) if overrides else settings


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args)
    setup_logging(settings.log_dir, settings.log_level)
    if args.command == "login" and not args.password:
        args.password = getpass.getpass("Password: ")
    code = asyncio.run(_run(args, settings))
    if argv is None:
        sys.exit(code)
    return code


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    async with ApiService.from_settings(settings) as api:
        session = SessionState(api)
        admin = AdminState(api, session)

        if args.command == "login":
            result = await session.login({"username": args.username, "password": args.password})
            if not result.success:
                return _fail(result.error)
            console.print(f"[green]Signed in as {result.data.username}[/green]")
            return 0

        if args.command == "logout":
            await session.logout()
            console.print("Signed out.")
            return 0

        await session.initialize()
        if not session.is_authenticated:
            return _fail("Not signed in. Run `shop-admin login` first.")

        if args.command == "whoami":
            user = session.user
            console.print(f"{user.username} <{user.email}> ({user.role or 'admin'})")
            return 0

        if args.command == "config":
            _print_config(admin.config)
            return 0

        if args.command == "dashboard":
            summary, source = admin.dashboard_view()
            _print_dashboard(summary, source)
            return 0

        if args.command == "products":
            products = admin.config.products
            if args.category:
                products = [p for p in products if p.category == args.category]
            _print_products(products)
            return 0

        if args.command == "delete-product":
            result = await admin.delete_product(args.product_id)
            if not result.success:
                return _fail(result.error)
            console.print(f"[green]Deleted product {args.product_id}[/green]")
            return 0

    return _fail(f"Unknown command: {args.command}")


def _fail(message: str | None) -> int:
    console.print(f"[red]{message or 'Unknown error'}[/red]")
    return 1


def _print_config(config: Configuration) -> None:
    shop = config.shop_info
    console.print(f"[bold]{shop.logo} {shop.name}[/bold]")
    if shop.description:
        console.print(f"[dim]{shop.description}[/dim]")
    contact = config.contact_info
    console.print(f"Order: {contact.order_link}  Email: {contact.email}  Phone: {contact.phone}")
    table = Table("Section", "Entries")
    table.add_row("Categories", ", ".join(c.name for c in config.categories) or "-")
    table.add_row("Farms", ", ".join(f.name for f in config.farms) or "-")
    table.add_row("Social links", ", ".join(s.name for s in config.social_media_links) or "-")
    table.add_row("Products", str(len(config.products)))
    console.print(table)


def _print_dashboard(summary: DashboardSummary, source: str) -> None:
    stats = summary.stats
    table = Table("Statistic", "Value", title="Dashboard")
    table.add_row("Total products", str(stats.total_products))
    table.add_row("Categories", str(stats.total_categories))
    table.add_row("Farms", str(stats.total_farms))
    table.add_row("Social links", str(stats.total_social_links))
    table.add_row("Popular products", str(stats.popular_products))
    table.add_row("Pages", str(stats.total_pages))
    console.print(table)
    console.print(f"Source: {source}")
    if summary.recent_products:
        console.print("[bold]Recent products[/bold]")
        for product in summary.recent_products:
            console.print(f"  {product.name}")


def _print_products(products: list[Product]) -> None:
    table = Table("ID", "Name", "Category", "Variants", "Popular")
    for product in products:
        variants = ", ".join(f"{v.name} {v.price:.2f}" for v in product.variants)
        table.add_row(
            str(product.id if product.id is not None else ""),
            product.name,
            product.category or "-",
            variants or "-",
            "yes" if product.popular else "",
        )
    console.print(table)


if __name__ == "__main__":
    main()
