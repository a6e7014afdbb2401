"""CLI entry point for hotelpos."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date

from dotenv import load_dotenv

from .config import load_config
from .errors import PosError, ValidationError
from .service import build_service

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="hotelpos",
        description="Order entry, stock tracking and daily reports for a single outlet",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="Path to a TOML config file"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    # items
    items = sub.add_parser("items", help="Manage catalog items")
    items_sub = items.add_subparsers(dest="action", required=True)
    add = items_sub.add_parser("add", help="Add an item")
    add.add_argument("code", type=int)
    add.add_argument("name")
    add.add_argument("price", type=float)
    add.add_argument("--category", default="")
    add.add_argument("--unit", default="pcs")
    lst = items_sub.add_parser("list", help="List items")
    lst.add_argument("--active", action="store_true", help="Only active items")
    lst.add_argument("--json", action="store_true", help="Output JSON")
    deact = items_sub.add_parser("deactivate", help="Stop selling an item")
    deact.add_argument("code", type=int)

    # tables
    sub.add_parser("tables", help="List tables and their active orders")

    # stock
    stock = sub.add_parser("stock", help="Record and inspect daily stock")
    stock_sub = stock.add_subparsers(dest="action", required=True)
    sset = stock_sub.add_parser("set", help="Record starting stock for a day")
    sset.add_argument("code", type=int)
    sset.add_argument("quantity", type=float)
    sset.add_argument("--date", default=None)
    sset.add_argument("--notes", default=None)
    srestock = stock_sub.add_parser("restock", help="Correct current stock")
    srestock.add_argument("code", type=int)
    srestock.add_argument("quantity", type=float)
    srestock.add_argument("--date", default=None)
    sshow = stock_sub.add_parser("show", help="Show stock for a day")
    sshow.add_argument("--date", default=None)

    # order
    order = sub.add_parser("order", help="Create and update orders")
    order_sub = order.add_subparsers(dest="action", required=True)
    onew = order_sub.add_parser("new", help="Create an order from CODE or CODExQTY")
    onew.add_argument("lines", nargs="+")
    onew.add_argument("--table", default=None)
    ostatus = order_sub.add_parser("status", help="Change order status")
    ostatus.add_argument("order_id")
    ostatus.add_argument("status")
    oline = order_sub.add_parser("line", help="Change a line's kitchen status")
    oline.add_argument("order_id")
    oline.add_argument("line_id")
    oline.add_argument("status")
    opay = order_sub.add_parser("pay", help="Mark an order as paid")
    opay.add_argument("order_id")

    # orders
    olist = sub.add_parser("orders", help="List orders")
    olist.add_argument("--date", default=None)
    olist.add_argument("--status", default=None)
    olist.add_argument("--json", action="store_true")

    # report
    report = sub.add_parser("report", help="Daily reports")
    report.add_argument("kind", choices=["sales", "stock", "suggest", "all"])
    report.add_argument("--date", default=None)
    report.add_argument("--json", action="store_true")
    report.add_argument("--pdf", default=None, metavar="FILE", help="Also write a PDF")

    # schedule
    sub.add_parser("schedule", help="Run the end-of-day report scheduler")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()
    config = load_config(args.config)
    service = build_service(config)

    try:
        match args.command:
            case "items":
                _cmd_items(service, args)
            case "tables":
                _cmd_tables(service)
            case "stock":
                _cmd_stock(service, args)
            case "order":
                _cmd_order(service, args)
            case "orders":
                _cmd_orders(service, args)
            case "report":
                _cmd_report(service, args)
            case "schedule":
                _cmd_schedule(service)
    except PosError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    finally:
        service.close()
    return 0


def parse_line_token(token: str) -> tuple[int, float]:
    """Parse ``7`` or ``7x2`` / ``7*0.5`` into (code, quantity)."""
    for sep in ("x", "X", "*"):
        if sep in token:
            code, qty = token.split(sep, 1)
            return int(code), float(qty)
    return int(token), 1.0


def _today(value: str | None) -> str:
    return value or date.today().isoformat()


def _cmd_items(service, args) -> None:
    catalog = service.catalog
    if args.action == "add":
        item = catalog.create(
            args.code, args.name, args.price, category=args.category, unit=args.unit
        )
        print(f"Added #{item.code} {item.name} @ {item.price:.2f}")
    elif args.action == "list":
        items = catalog.list(active_only=args.active)
        if args.json:
            data = [
                {
                    "id": i.id,
                    "code": i.code,
                    "name": i.name,
                    "category": i.category,
                    "price": i.price,
                    "unit": i.unit,
                    "is_active": i.is_active,
                }
                for i in items
            ]
            print(json.dumps(data, ensure_ascii=False, indent=2))
            return
        if not items:
            print("No items.")
            return
        for i in items:
            flag = "" if i.is_active else "  (inactive)"
            print(f"  {i.code:>4}  {i.name:<24} {i.price:>8.2f} / {i.unit}{flag}")
    elif args.action == "deactivate":
        item = catalog.deactivate(catalog.lookup(args.code).id)
        print(f"Deactivated #{item.code} {item.name}")


def _cmd_tables(service) -> None:
    for table in service.tables.list():
        active = service.orders.by_table(table.table_no)
        current = f"{active.order_no} ({active.status.value})" if active else "-"
        print(f"  {table.table_no:<6} {table.status.value:<10} {current}")


def _cmd_stock(service, args) -> None:
    day = _today(args.date)
    if args.action == "show":
        report = service.reports.daily_stock(day)
        if not report.items:
            print(f"No stock entries for {day}.")
            return
        for row in report.items:
            print(
                f"  {row.item_name:<24} start {row.starting_stock:>7g}  "
                f"now {row.current_stock:>7g}  sold {row.sold_quantity:>7g} {row.unit}"
            )
        for a in report.anomalies:
            print(f"  ! {a.kind} item={a.item_id} qty={a.quantity:g}")
        return

    item = service.catalog.lookup(args.code)
    if args.action == "set":
        entry = service.stock.record(item.id, day, args.quantity, notes=args.notes)
    else:
        entry = service.stock.restock(item.id, day, args.quantity)
    print(
        f"{item.name} on {day}: start {entry.starting_stock:g}, "
        f"current {entry.current_stock:g} {entry.unit}"
    )


def _cmd_order(service, args) -> None:
    orders = service.orders
    if args.action == "new":
        cart = service.new_cart()
        for token in args.lines:
            try:
                code, qty = parse_line_token(token)
            except ValueError:
                raise ValidationError(f"Cannot parse order line {token!r}") from None
            cart.add_line(code, qty)
        order = cart.commit(args.table)
        print(f"Created {order.order_no} ({order.id}) total {order.total:.2f}")
        for line in order.lines:
            print(
                f"  {line.id}  {line.item_name:<24} "
                f"{line.quantity:g} x {line.unit_price:.2f} = {line.subtotal:.2f}"
            )
        for a in order.stock_anomalies:
            print(f"Warning: stock {a.kind} for item {a.item_id}", file=sys.stderr)
    elif args.action == "status":
        order = orders.transition(args.order_id, args.status.lower())
        print(f"{order.order_no} is now {order.status.value}")
    elif args.action == "line":
        order = orders.transition_line(args.order_id, args.line_id, args.status.lower())
        print(f"{order.order_no} kitchen status: {order.kitchen_status.value}")
    elif args.action == "pay":
        order = orders.mark_paid(args.order_id)
        print(f"{order.order_no} paid ({order.total:.2f})")


def _cmd_orders(service, args) -> None:
    orders = service.orders.list_orders(day=args.date, status=args.status)
    if args.json:
        data = [
            {
                "id": o.id,
                "order_no": o.order_no,
                "table_no": o.table_no,
                "status": o.status.value,
                "payment_status": o.payment_status.value,
                "total": o.total,
                "created_at": o.created_at,
            }
            for o in orders
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return
    if not orders:
        print("No orders.")
        return
    for o in orders:
        print(
            f"  {o.order_no}  {o.table_no or '-':<6} {o.status.value:<10} "
            f"{o.payment_status.value:<9} {o.total:>9.2f}  {o.id}"
        )


def _cmd_report(service, args) -> None:
    day = _today(args.date)
    reports = service.reports
    with service.orders.snapshot():
        sales = reports.daily_sales(day)
        stock = reports.daily_stock(day)
        suggestions = reports.stock_suggestions(day)

    if args.json:
        data = {
            "sales": sales.to_dict(),
            "stock": stock.to_dict(),
            "suggest": [s.to_dict() for s in suggestions],
        }
        if args.kind != "all":
            data = data[args.kind]
        print(json.dumps(data, ensure_ascii=False, indent=2))
    else:
        if args.kind in ("sales", "all"):
            print(f"Sales {day}: {sales.total_orders} orders, {sales.total_revenue:.2f}")
            for status, count in sales.orders_by_status.items():
                print(f"  {status:<10} {count}")
            for top in sales.top_items:
                print(f"  {top.item_name:<24} {top.quantity_sold:>7g} {top.revenue:>10.2f}")
        if args.kind in ("stock", "all"):
            print(f"Stock {day}:")
            for row in stock.items:
                print(
                    f"  {row.item_name:<24} {row.starting_stock:>7g} -> "
                    f"{row.current_stock:>7g} (sold {row.sold_quantity:g})"
                )
        if args.kind in ("suggest", "all"):
            print(f"Suggestions {day}:")
            for s in suggestions:
                extra = (
                    f" order {s.recommended_quantity:g}"
                    if s.recommended_quantity is not None
                    else ""
                )
                print(
                    f"  {s.item_name:<24} {s.suggestion:<10} "
                    f"{s.days_remaining:.1f} days{extra}"
                )

    if args.pdf:
        from .pdf import generate_report_pdf

        try:
            path = generate_report_pdf(sales, stock, suggestions, args.pdf)
            print(f"PDF saved: {path}")
        except ImportError as e:
            print(f"PDF error: {e}", file=sys.stderr)


def _cmd_schedule(service) -> None:
    from .scheduler import ReportScheduler

    async def run() -> None:
        scheduler = ReportScheduler(service)
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    sys.exit(main())
