"""Operator commands against the local certificate cache and the authority."""

from __future__ import annotations

import asyncio
import json
from typing import Any, NoReturn

import typer

from hostcert.services.bootstrap import open_engine
from hostcert.services.logging import configure_logging
from hostcert.services.settings import load_settings
from hostcert.services.ssl import CertificateStore, SSLServiceError

app = typer.Typer(help="Inspect and reconcile hostname certificates")


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


def _fail(exc: SSLServiceError) -> NoReturn:
    typer.secho(f"error: {exc}", fg=typer.colors.RED, err=True)
    body = getattr(exc, "body", None)
    if body is not None:
        _echo_json(body)
    raise typer.Exit(code=1)


@app.command("list")
def list_records(as_json: bool = typer.Option(False, "--json", help="print raw JSON")):
    """List the local cache, most recently created first."""
    settings = load_settings()

    async def _run():
        store = CertificateStore(settings.store.db_path)
        try:
            return await store.list()
        finally:
            store.close()

    try:
        records = asyncio.run(_run())
    except SSLServiceError as exc:
        _fail(exc)
    if as_json:
        _echo_json([r.as_dict() for r in records])
        return
    if not records:
        typer.echo("no records")
        return
    for r in records:
        typer.echo(f"{r.hostname}\t{r.status or '-'}\t{r.id}\t{r.created_at}")


@app.command("show")
def show(hostname: str):
    """Show a hostname (local cache first, then the authority)."""
    settings = load_settings()
    configure_logging(settings.log_level)

    async def _run():
        async with open_engine(settings) as engine:
            return await engine.read(hostname)

    try:
        record = asyncio.run(_run())
    except SSLServiceError as exc:
        _fail(exc)
    _echo_json(record.as_dict())


@app.command("recheck")
def recheck(hostname: str):
    """Fetch the authority status now and store it (blocks for the whole poll)."""
    settings = load_settings()
    configure_logging(settings.log_level)

    async def _run():
        async with open_engine(settings) as engine:
            return await engine.recheck(hostname)

    try:
        record = asyncio.run(_run())
    except SSLServiceError as exc:
        _fail(exc)
    _echo_json(record.as_dict())
