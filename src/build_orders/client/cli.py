"""
Command-line client for the Build Orders API.

Usage:
    build-orders list --public
    build-orders show <id>
    build-orders create plan.json --token <session token>
    build-orders delete <id> --token <session token>
"""

import json
import logging
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from build_orders.client.client import ApiError, BuildOrdersClient
from build_orders.client.viewer import StepViewer

# Server URL and session token may come from a .env file.
load_dotenv()

console = Console()
logger = logging.getLogger("build_orders.client")


def setup_logging(verbose: bool, log_file: Path | None):
    log_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if logger.handlers:
        return
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(log_format)
        logger.addHandler(handler)


def print_errors(e: Exception):
    if isinstance(e, ValidationError):
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "body"
            console.print(f"  [red]{field}[/red]: {err['msg']}")
    elif isinstance(e, ApiError):
        console.print(f"[red bold]Error {e.status_code}:[/red bold] {e.message}")
        for f in e.fields:
            console.print(f"  [red]{f['field']}[/red]: {f['message']}")


@click.group()
@click.option("--server", envvar="BUILD_ORDERS_URL", default="http://localhost:8000", show_default=True,
              help="Base URL of the Build Orders API.")
@click.option("--token", envvar="BUILD_ORDERS_TOKEN", default=None,
              help="Session token (the session_token cookie set after Steam sign-in).")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.option("--log-file", type=click.Path(path_type=Path), default=None, help="Also write logs to this file.")
@click.pass_context
def main(ctx: click.Context, server: str, token: str | None, verbose: bool, log_file: Path | None):
    """Browse, create and step through build orders."""
    setup_logging(verbose, log_file)
    ctx.obj = ctx.with_resource(BuildOrdersClient(server, token))


@main.command("list")
@click.option("--public", is_flag=True, help="Only public build orders.")
@click.option("--user", "user_id", default=None, help="Only build orders by this user id.")
@click.pass_obj
def list_command(client: BuildOrdersClient, public: bool, user_id: str | None):
    """List build orders, newest first."""
    try:
        build_orders = client.list_build_orders(public=public, user_id=user_id)
    except ApiError as e:
        print_errors(e)
        raise click.Abort()

    if not build_orders:
        console.print("No build orders yet. Be the first to create one!")
        return

    table = Table("id", "title", "civ", "steps", "views", "likes", "author")
    for b in build_orders:
        author = b.author.name if b.author and b.author.name else "Anonymous"
        table.add_row(b.id, escape(b.title), escape(b.civilization), str(len(b.steps)), str(b.views), str(b.likes), escape(author))
    console.print(table)


@main.command("show")
@click.argument("build_order_id")
@click.pass_obj
def show_command(client: BuildOrdersClient, build_order_id: str):
    """Step through a build order interactively."""
    try:
        build_order = client.get_build_order(build_order_id)
    except ApiError as e:
        print_errors(e)
        raise click.Abort()

    if not build_order.steps:
        console.print(f"[bold]{escape(build_order.title)}[/bold] has no steps.")
        return
    StepViewer(build_order, console).run()


@main.command("create")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def create_command(client: BuildOrdersClient, file: Path):
    """Validate a JSON build order locally, then submit it."""
    try:
        payload = json.loads(file.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red bold]{escape(file.name)} is not valid JSON:[/red bold] {escape(str(e))}")
        raise click.Abort()
    try:
        created = client.create_build_order(payload)
    except (ValidationError, ApiError) as e:
        console.print("[red bold]Build order rejected[/red bold]")
        print_errors(e)
        raise click.Abort()
    console.print(f"Created [bold]{escape(created.title)}[/bold] ({created.id})")


@main.command("delete")
@click.argument("build_order_id")
@click.pass_obj
def delete_command(client: BuildOrdersClient, build_order_id: str):
    """Delete one of your build orders."""
    try:
        client.delete_build_order(build_order_id)
    except ApiError as e:
        print_errors(e)
        raise click.Abort()
    console.print(f"Deleted {build_order_id}")


if __name__ == "__main__":
    main()
