"""Squeeze client CLI.

Talks to a media server over the line protocol (default) or Comet.

Usage:
    squeeze-client players                          # List connected players
    squeeze-client list albums                      # Every album
    squeeze-client list albums -p artist_id:12      # Albums of one artist
    squeeze-client list status --player 00:04:20:aa:bb:cc
    squeeze-client list artists --all --format json # Ask for the full list at once
    squeeze-client send --player 00:04:20:aa:bb:cc mixer volume 50

Connection settings default to the SQUEEZE_* environment variables.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any

import click

from .client import SqueezeClient, create_client
from .config import TRANSPORT_CLI, TRANSPORT_COMET, ClientConfig
from .errors import SqueezeClientError
from .protocol.catalog import DEFAULT_CATALOG
from .protocol.codec import encode

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"


def truncate(text: str | None, max_len: int = 50) -> str:
    """Truncate text for display."""
    if not text:
        return ""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _label(item: Any) -> str:
    for name in ("name", "album", "artist", "title", "genre", "filename", "year"):
        value = getattr(item, name, None)
        if value:
            return str(value)
    return item.model_dump_json(exclude_none=True)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except ConnectionError as e:
        click.echo(f"Cannot connect to server: {e}", err=True)
        sys.exit(1)
    except (SqueezeClientError, TimeoutError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--host", default=None, help="Server host (default: $SQUEEZE_HOST or localhost)")
@click.option("--port", type=int, default=None, help="Line protocol or HTTP port")
@click.option("--comet", is_flag=True, help="Use the Comet (HTTP) interface")
@click.option("--page-size", type=int, default=None, help="Items per follow-up page")
@click.option("--timeout", default=30.0, help="Seconds to wait for a complete list")
@click.option("--verbose", "-v", is_flag=True, help="Trace protocol traffic on stderr")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    comet: bool,
    page_size: int | None,
    timeout: float,
    verbose: bool,
) -> None:
    """Browse a Squeezebox / Lyrion media server."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    overrides: dict[str, Any] = {}
    if host:
        overrides["host"] = host
    if comet:
        overrides["transport"] = TRANSPORT_COMET
    if page_size is not None:
        overrides["page_size"] = page_size
    if verbose:
        overrides["debug_logging"] = True

    try:
        config = replace(ClientConfig.from_env(), **overrides)
        if port is not None:
            port_field = "cli_port" if config.transport == TRANSPORT_CLI else "http_port"
            config = replace(config, **{port_field: port})
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    ctx.obj = {"config": config, "timeout": timeout}


@main.command("players")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_obj
def players_cmd(obj: dict[str, Any], output_format: str) -> None:
    """List the players connected to the server."""

    async def fetch() -> list[Any]:
        async with create_client(obj["config"]) as client:
            return await client.fetch_players(timeout=obj["timeout"])

    players = _run(fetch())

    if output_format == FORMAT_JSON:
        click.echo(json.dumps([p.model_dump(exclude_none=True) for p in players], indent=2))
        return

    if not players:
        click.echo("No players connected.")
        return

    click.echo(f"{'ID':<20} {'Name':<25} {'Model':<15} {'Connected':<9}")
    click.echo("-" * 72)
    for p in players:
        connected = "yes" if p.connected == "1" else "no"
        click.echo(
            f"{p.playerid:<20} {truncate(p.name, 25):<25} {truncate(p.model, 15):<15} {connected:<9}"
        )
    click.echo(f"\nTotal: {len(players)} player(s)")


@main.command("list")
@click.argument("command", type=click.Choice(DEFAULT_CATALOG.names()))
@click.option("--player", "player_id", default=None, help="Player id for player commands")
@click.option("--prefix", default=None, help="Command prefix, e.g. a plugin name for 'items'")
@click.option("--param", "-p", "params", multiple=True, help="Tagged parameter key:value")
@click.option("--start", default=0, help="First item to fetch")
@click.option("--all", "full_list", is_flag=True, help="Ask the server for the full list at once")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_obj
def list_cmd(
    obj: dict[str, Any],
    command: str,
    player_id: str | None,
    prefix: str | None,
    params: tuple[str, ...],
    start: int,
    full_list: bool,
    output_format: str,
) -> None:
    """Fetch a list, page by page, and print its items.

    Examples:

        # All albums of genre 3
        squeeze-client list albums -p genre_id:3 -p tags:la

        # Search across genres, albums, artists and tracks
        squeeze-client list search -p term:love
    """
    descriptor = DEFAULT_CATALOG.lookup(command)
    if descriptor.player_specific and not player_id:
        raise click.UsageError(f"'{command}' needs --player")
    if descriptor.prefixed and not prefix:
        raise click.UsageError(f"'{command}' needs --prefix")

    results: list[tuple[int, int, list[Any]]] = []

    async def fetch() -> None:
        async with create_client(obj["config"]) as client:
            await _collect(
                client,
                command,
                -1 if full_list else start,
                results,
                params=list(params),
                player_id=player_id,
                prefix=prefix,
                timeout=obj["timeout"],
            )

    _run(fetch())

    items = [item for _, _, batch in results for item in batch]
    if output_format == FORMAT_JSON:
        click.echo(json.dumps([i.model_dump(exclude_none=True) for i in items], indent=2))
        return

    for item in items:
        click.echo(f"{item.id or '':<10} {truncate(_label(item), 60)}")
    total = max((t for t, _, _ in results), default=0)
    click.echo(f"\n{len(items)} of {total} item(s)")


async def _collect(
    client: SqueezeClient,
    command: str,
    start: int,
    results: list[tuple[int, int, list[Any]]],
    *,
    params: list[str],
    player_id: str | None,
    prefix: str | None,
    timeout: float,
) -> None:
    """Run one list query until the engine has retired it."""
    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()
    query_ids: list[int] = []

    def check_done() -> None:
        # Runs after the reply is fully processed, when the registry is current
        if query_ids and query_ids[0] not in client.engine.registry and not done.done():
            done.set_result(None)

    def on_items(total: int, batch_start: int, parameters: dict[str, str], items: list[Any]) -> None:
        results.append((total, batch_start, items))
        loop.call_soon(check_done)

    owner = object()
    query_ids.append(
        client.request_items(
            command,
            start,
            on_items,
            parameters=params,
            player_id=player_id,
            prefix=prefix,
            owner=owner,
        )
    )
    try:
        await asyncio.wait_for(done, timeout)
    finally:
        client.cancel_client_requests(owner)


@main.command("send")
@click.argument("words", nargs=-1, required=True)
@click.option("--player", "player_id", default=None, help="Player to address")
@click.option("--wait", default=2.0, help="Seconds to wait for the server's reply")
@click.pass_obj
def send_cmd(obj: dict[str, Any], words: tuple[str, ...], player_id: str | None, wait: float) -> None:
    """Send a raw command and print the server's reply."""

    async def send() -> Any:
        async with create_client(obj["config"]) as client:
            line = " ".join(encode(word) for word in words)
            client.send_command(client.render_command(line, player_id))
            try:
                async with asyncio.timeout(wait):
                    async for message in client.events():
                        return message
            except TimeoutError:
                return None
        return None

    reply = _run(send())
    if reply is None:
        click.echo("No reply.", err=True)
        return
    if isinstance(reply, str):
        click.echo(reply)
    else:
        click.echo(json.dumps(reply.model_dump(by_alias=True, exclude_none=True), indent=2))


if __name__ == "__main__":
    main()
