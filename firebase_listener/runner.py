"""
CLI entrypoint for the realtime database listener.
"""
import asyncio
import json
import sys

import typer
from loguru import logger

from client.database_client import DatabaseClient
from client.listener import DatabaseListener
from client.visualizer import Visualizer
from shared.config import settings
from shared.models import StreamNotice
from shared.paths import normalize_host, render, with_query

app = typer.Typer(help="Realtime database listener CLI")

HOST_OPTION = typer.Option(settings.DATABASE_HOST, "--host", help="Database URL")
PATH_OPTION = typer.Option(settings.DATABASE_PATH, "--path", help="Location inside the database")
QUERY_OPTION = typer.Option("", "--query", help="Query string, e.g. 'orderBy=\"$key\"'")

@app.callback()
def main(log_level: str = typer.Option(settings.LOG_LEVEL, help="loguru level for stderr")):
    logger.remove()
    logger.add(sys.stderr, level=log_level.upper())

@app.command()
def emulator():
    """Start the local database emulator using Uvicorn."""
    import uvicorn
    typer.echo(f"Starting emulator on port {settings.PORT}...")
    uvicorn.run("server.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())

@app.command()
def listen(
    host: str = HOST_OPTION,
    path: str = PATH_OPTION,
    query: str = QUERY_OPTION,
    duration: float = typer.Option(0.0, help="Seconds to listen; 0 listens until interrupted"),
    dashboard: bool = typer.Option(True, help="Show the rich dashboard instead of printing events"),
):
    """Stream changes at a location, reconnecting with backoff when the stream drops."""
    listener = DatabaseListener(with_query(normalize_host(host, path), query))
    duration_s = duration or None

    async def print_event(notice: StreamNotice):
        typer.echo(notice.model_dump_json())

    async def print_status(status: str):
        typer.echo(f"# {status}", err=True)

    try:
        if dashboard:
            asyncio.run(Visualizer(listener).run(duration_s))
        else:
            listener.set_callbacks(print_event, print_status)
            asyncio.run(listener.run(duration_s))
    except KeyboardInterrupt:
        pass

@app.command()
def get(host: str = HOST_OPTION, path: str = PATH_OPTION, query: str = QUERY_OPTION):
    """Read the value at a location."""
    async def _get():
        client = DatabaseClient(host, db_path=path)
        try:
            return await client.get_value(query)
        finally:
            await client.aclose()

    typer.echo(json.dumps(asyncio.run(_get()), indent=2))

@app.command("set")
def set_value(
    value: str = typer.Argument(..., help="JSON document to write"),
    verb: str = typer.Option("PATCH", help="PUT, POST, PATCH or DELETE"),
    host: str = HOST_OPTION,
    path: str = PATH_OPTION,
    query: str = QUERY_OPTION,
):
    """Write a JSON document to a location."""
    try:
        document = json.loads(value)
    except json.JSONDecodeError as e:
        typer.echo(f"Invalid JSON: {e}", err=True)
        raise typer.Exit(1)

    async def _set():
        client = DatabaseClient(host, db_path=path)
        try:
            return await client.set_value(document, verb, query)
        finally:
            await client.aclose()

    typer.echo(json.dumps(asyncio.run(_set()), indent=2))

@app.command()
def call(
    function: str = typer.Argument(..., help="Function name"),
    function_host: str = typer.Option(settings.FUNCTION_HOST, help="Base URL of the functions host"),
):
    """Invoke a remote function and print its raw response."""
    async def _call():
        client = DatabaseClient(function_host=function_host)
        try:
            return await client.call_function(function)
        finally:
            await client.aclose()

    typer.echo(asyncio.run(_call()).decode("utf-8", errors="replace"))

@app.command("path")
def show_path(host: str = HOST_OPTION, path: str = PATH_OPTION, query: str = QUERY_OPTION):
    """Print the URL a request would use."""
    typer.echo(render(normalize_host(host, path), query))

if __name__ == "__main__":
    app()
