from __future__ import annotations

import logging
import subprocess
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich import print
from rich.markup import escape
from rich.table import Table

from orderdesk.config import Settings
from orderdesk.core.access import OperatorContext
from orderdesk.core.conversations import ConversationStore
from orderdesk.core.db import OperatorRepository
from orderdesk.core.errors import NotFound, OrderDeskError
from orderdesk.core.logging import configure_logging, get_logger
from orderdesk.core.media import ImageUploader
from orderdesk.core.normalize import ORDER_STATUSES, ConversationSummary
from orderdesk.core.notifications import format_amount
from orderdesk.core.orders import status_label
from orderdesk.services import (
    ChatService,
    ConversationInbox,
    ConversationThread,
    FulfillmentOutcome,
    FulfillmentService,
    OperatorService,
    OrderBoard,
    OrderImporter,
    OutcomeKind,
    export_orders,
    run_doctor_checks,
)
from orderdesk.services.views import ALL_STATUSES

app = typer.Typer(no_args_is_help=True, help="orderdesk: order fulfillment console with customer chat")
orders_app = typer.Typer(no_args_is_help=True, help="Order list and status workflow")
chat_app = typer.Typer(no_args_is_help=True, help="Customer conversations")
operators_app = typer.Typer(no_args_is_help=True, help="Operator accounts and roles")
app.add_typer(orders_app, name="orders")
app.add_typer(chat_app, name="chat")
app.add_typer(operators_app, name="operators")

AS_OPTION_HELP = "Operator id (defaults to ORDERDESK_OPERATOR_ID)"

EXIT_REJECTED = 1
EXIT_PARTIAL = 2


def _load_settings(base_dir: Path | None = None) -> Settings:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    return settings


def _start_run(settings: Settings, name: str, operator_id: str | None = None) -> logging.LoggerAdapter:
    correlation_id = uuid.uuid4().hex
    configure_logging(settings.logs_dir, correlation_id=correlation_id, console=False)
    return get_logger(f"orderdesk.{name}", correlation_id, operator_id)


@contextmanager
def _open_stores(settings: Settings) -> Iterator[tuple[OperatorRepository, ConversationStore]]:
    with OperatorRepository(settings.orders_db_path, settings.db_timeout_sec) as orders:
        with ConversationStore(settings.chat_db_path, settings.db_timeout_sec) as conversations:
            orders.migrate()
            conversations.migrate()
            yield orders, conversations


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except OrderDeskError as exc:
        print(f"[red]{exc.__class__.__name__}[/red]: {escape(str(exc))}")
        raise typer.Exit(EXIT_REJECTED) from exc
    except ValueError as exc:
        print(f"[red]Invalid input[/red]: {escape(str(exc))}")
        raise typer.Exit(EXIT_REJECTED) from exc


def _resolve_operator(repository: OperatorRepository, settings: Settings, operator_id: str | None) -> OperatorContext:
    operator_id = operator_id or settings.operator_id
    if not operator_id:
        raise typer.BadParameter("Pass --as or set ORDERDESK_OPERATOR_ID")
    operator = repository.get_operator(operator_id)
    if operator is not None:
        return OperatorContext(operator_id=operator.id, role=operator.role)
    if settings.operator_role:
        return OperatorContext(operator_id=operator_id, role=settings.operator_role)
    raise NotFound("operator", operator_id)


def _render_outcome(outcome: FulfillmentOutcome) -> None:
    if outcome.kind is OutcomeKind.FULLY_SUCCEEDED:
        print(f"[green]{escape(outcome.describe())}[/green]")
        return
    if outcome.kind is OutcomeKind.STATUS_ADVANCED_NOTIFICATION_FAILED:
        print(f"[yellow]{escape(outcome.describe())}[/yellow]")
        print(f"Retry with: orderdesk orders notify {outcome.order_id}")
        raise typer.Exit(EXIT_PARTIAL)
    print(f"[red]{escape(outcome.describe())}[/red]")
    raise typer.Exit(EXIT_REJECTED)


def _inbox_table(summaries: list[ConversationSummary]) -> Table:
    table = Table(title="Conversations")
    for column in ("customer", "name", "last message", "unread", "new order"):
        table.add_column(column)
    for summary in summaries:
        table.add_row(
            summary.customer_id,
            escape(summary.owner_name or "-"),
            escape((summary.last_message or "")[:60]),
            str(summary.unread_by_admin),
            summary.pending_order_id or ("yes" if summary.has_new_order else ""),
        )
    return table


@app.command("init")
def init_command(
    base_dir: Path | None = typer.Option(None, help="Project root (defaults to the current folder)"),
) -> None:
    settings = _load_settings(base_dir=base_dir)
    with _reported_errors():
        with OperatorRepository(settings.orders_db_path, settings.db_timeout_sec) as orders:
            executed = orders.migrate()
        with ConversationStore(settings.chat_db_path, settings.db_timeout_sec) as conversations:
            executed += conversations.migrate()
    print(f"[green]Initialized[/green]. Orders DB: {settings.orders_db_path}, chat DB: {settings.chat_db_path}")
    print(f"Migrations: {executed if executed else 'none pending'}")


@orders_app.command("list")
def orders_list_command(
    status: str = typer.Option(ALL_STATUSES, help=f"Filter: {ALL_STATUSES}, {', '.join(ORDER_STATUSES)}"),
    page: int = typer.Option(1, help="Page number"),
) -> None:
    if status != ALL_STATUSES and status not in ORDER_STATUSES:
        raise typer.BadParameter(f"Unknown status: {status}")
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        with OrderBoard(orders, per_page=settings.orders_per_page) as board:
            counts = board.counts()
            current = board.page(page, status)

    print(" ".join(f"{key}: {value}" for key, value in counts.items()))
    table = Table(title=f"Orders ({status}) page {current.number}/{current.total_pages}")
    for column in ("id", "customer", "status", "items", "total", "placed"):
        table.add_column(column)
    for order in current.orders:
        table.add_row(
            order.id,
            order.customer_email or order.customer_id,
            status_label(order.status),
            str(len(order.items)),
            format_amount(order.total_amount),
            order.order_date.strftime("%Y-%m-%d %H:%M") if order.order_date else "-",
        )
    print(table)


@orders_app.command("show")
def orders_show_command(order_id: str) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        order = orders.require_order(order_id)

    print(f"[bold]Order {order.id}[/bold] ({status_label(order.status)})")
    print(f"- customer: {order.customer_email or order.customer_id}")
    print(f"- address: {order.delivery_address or '-'}")
    print(f"- payment: {order.payment_method or '-'}")
    print(f"- total: {format_amount(order.total_amount)}")
    for item in order.items:
        print(f"  * {item.name} x{item.quantity} @ {format_amount(item.unit_price)}")
    print("History:")
    for entry in order.status_history:
        who = f" by {entry.requested_by}" if entry.requested_by else ""
        print(f"  {entry.timestamp.isoformat()} {entry.status}: {entry.note}{who}")


@orders_app.command("advance")
def orders_advance_command(
    order_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "fulfillment", operator.operator_id)
        outcome = FulfillmentService(orders, conversations, logger).advance_and_notify(order_id, operator)
    _render_outcome(outcome)


@orders_app.command("cancel")
def orders_cancel_command(
    order_id: str,
    reason: str | None = typer.Option(None, help="Shown in the status history"),
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "fulfillment", operator.operator_id)
        outcome = FulfillmentService(orders, conversations, logger).cancel_and_notify(order_id, operator, reason)
    _render_outcome(outcome)


@orders_app.command("notify")
def orders_notify_command(
    order_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "fulfillment", operator.operator_id)
        outcome = FulfillmentService(orders, conversations, logger).resend_notification(order_id, operator)
    _render_outcome(outcome)


@orders_app.command("import")
def orders_import_command(path: Path = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    settings = _load_settings()
    logger = _start_run(settings, "import")
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        stats = OrderImporter(orders, conversations, logger).import_file(path)

    print("[green]Import finished[/green]")
    for key, value in stats.items():
        print(f"- {key}: {value}")
    if stats["errors"]:
        raise typer.Exit(EXIT_REJECTED)


@chat_app.command("inbox")
def chat_inbox_command(search: str | None = typer.Option(None, help="Filter by customer name")) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (_, conversations):
        with ConversationInbox(conversations) as inbox:
            summaries = inbox.search(search)
            total_unread = inbox.total_unread
    print(_inbox_table(summaries))
    print(f"Unread: {total_unread}")


@chat_app.command("thread")
def chat_thread_command(
    customer_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "chat", operator.operator_id)
        chat = ChatService(conversations, logger)
        with ConversationThread(conversations, customer_id, chat, operator) as thread:
            messages = thread.messages

    for message in messages:
        body = escape(message.text or f"image: {message.image_ref}")
        marker = " (order)" if message.order_related else ""
        print(f"{message.timestamp.isoformat()} ({message.sender_role}){marker} {body}")


@chat_app.command("send")
def chat_send_command(
    customer_id: str,
    text: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "chat", operator.operator_id)
        message = ChatService(conversations, logger).send_admin_message(customer_id, text, operator)
    print(f"[green]Sent[/green] {message.id}")


@chat_app.command("send-image")
def chat_send_image_command(
    customer_id: str,
    image: Path = typer.Argument(..., exists=True, dir_okay=False),
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "chat", operator.operator_id)
        chat = ChatService(conversations, logger, uploader=ImageUploader(settings.upload))
        message = chat.send_admin_image(customer_id, operator, image_path=image)
    print(f"[green]Sent[/green] {message.image_ref}")


@chat_app.command("read")
def chat_read_command(
    customer_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "chat", operator.operator_id)
        ChatService(conversations, logger).mark_read(customer_id, operator)
    print(f"[green]Marked as read[/green]: {customer_id}")


@chat_app.command("clear-order-flag")
def chat_clear_order_flag_command(
    customer_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "chat", operator.operator_id)
        ChatService(conversations, logger).clear_new_order_flag(customer_id, operator)
    print(f"[green]New-order flag cleared[/green]: {customer_id}")


@chat_app.command("processed")
def chat_processed_command(
    customer_id: str,
    message_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        operator = _resolve_operator(orders, settings, operator_id)
        logger = _start_run(settings, "chat", operator.operator_id)
        ChatService(conversations, logger).mark_order_processed(customer_id, message_id, operator)
    print(f"[green]Marked as processed[/green]: {message_id}")


@operators_app.command("list")
def operators_list_command(role: str | None = typer.Option(None, help="admin, staff or customer")) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        service = OperatorService(orders, _start_run(settings, "operators"))
        operators = service.list_operators(role)
        counts = service.role_counts()

    print(" ".join(f"{key}: {value}" for key, value in counts.items()))
    for operator in operators:
        print(f"- {operator.id} ({operator.role}) {operator.email or ''}")


@operators_app.command("add")
def operators_add_command(
    target_id: str,
    role: str = typer.Option(..., help="admin, staff or customer"),
    email: str | None = typer.Option(None),
    name: str | None = typer.Option(None, help="Display name"),
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        actor = None
        if operator_id or settings.operator_id:
            actor = _resolve_operator(orders, settings, operator_id)
        service = OperatorService(orders, _start_run(settings, "operators", actor.operator_id if actor else None))
        service.register(target_id, role, actor, email=email, display_name=name)
    print(f"[green]Registered[/green] {target_id} as {role}")


@operators_app.command("set-role")
def operators_set_role_command(
    target_id: str,
    role: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        actor = _resolve_operator(orders, settings, operator_id)
        service = OperatorService(orders, _start_run(settings, "operators", actor.operator_id))
        service.change_role(target_id, role, actor)
    print(f"[green]Role updated[/green]: {target_id} -> {role}")


@operators_app.command("delete")
def operators_delete_command(
    target_id: str,
    operator_id: str | None = typer.Option(None, "--as", help=AS_OPTION_HELP),
) -> None:
    settings = _load_settings()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        actor = _resolve_operator(orders, settings, operator_id)
        service = OperatorService(orders, _start_run(settings, "operators", actor.operator_id))
        service.delete_operator(target_id, actor)
    print(f"[green]Deleted[/green]: {target_id}")


@app.command("watch")
def watch_command(
    interval: float = typer.Option(2.0, help="Seconds between polls"),
    iterations: int | None = typer.Option(None, help="Stop after this many polls"),
) -> None:
    settings = _load_settings()
    _start_run(settings, "watch")
    with _reported_errors(), _open_stores(settings) as (orders, conversations):
        with ConversationInbox(conversations) as inbox, OrderBoard(orders, settings.orders_per_page) as board:
            print(_inbox_table(inbox.summaries))
            polls = 0
            try:
                while iterations is None or polls < iterations:
                    time.sleep(interval)
                    polls += 1
                    orders_changed = orders.changes.poll()
                    if conversations.changes.poll() or orders_changed:
                        print(_inbox_table(inbox.summaries))
                        print(" ".join(f"{key}: {value}" for key, value in board.counts().items()))
            except KeyboardInterrupt:
                print("Stopped")


@app.command("export")
def export_command(
    format: str = typer.Option("xlsx,csv", help="Comma separated formats: xlsx,csv"),
    out: Path | None = typer.Option(None, help="Export folder"),
) -> None:
    formats = [item.strip().lower() for item in format.split(",") if item.strip()]
    unknown = [item for item in formats if item not in {"xlsx", "csv"}]
    if unknown:
        raise typer.BadParameter(f"Unsupported formats: {unknown}")

    settings = _load_settings()
    out_dir = (out or settings.exports_dir).resolve()
    with _reported_errors(), _open_stores(settings) as (orders, _):
        files = export_orders(repository=orders, formats=formats, out_dir=out_dir)

    print("[green]Export finished[/green]")
    for file_path in files:
        print(f"- {file_path}")


@app.command("doctor")
def doctor_command() -> None:
    settings = _load_settings()
    checks = run_doctor_checks(settings)

    print("Doctor results:")
    for check in checks:
        status = check["status"].upper()
        print(f"- [{status}] {check['check']}: {check['detail']}")


@app.command("tests")
def tests_command() -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", "-q"], check=False)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)
    print("[green]Tests passed[/green]")


if __name__ == "__main__":
    app()
