import asyncio
import json
import logging
import typing
import urllib.parse
import uuid
from pathlib import Path

import typer

from . import conf
from .apiclient import (
    CswCatalogClient,
    is_csw_endpoint,
    models,
)
from .errors import CatalogClientError

app = typer.Typer()
connections_app = typer.Typer(help="Manage saved catalogue connections")
app.add_typer(connections_app, name="connections")


@app.callback()
def main(
    context: typer.Context,
    verbose: bool = False,
    settings_path: typing.Optional[Path] = typer.Option(
        None, help="Settings file to use instead of the default one"
    ),
):
    """Search OGC CSW catalogues from the command line"""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    context.obj = {
        "verbose": verbose,
        "settings_manager": conf.SettingsManager(settings_path),
    }


@app.command()
def search(
    context: typer.Context,
    catalog: str = typer.Argument(..., help="Catalogue URL or connection name"),
    text: typing.Optional[str] = typer.Option(None, help="Free text to search for"),
    workspace: typing.Optional[str] = typer.Option(
        None, help="Search layer identifiers in this workspace"
    ),
    start: int = typer.Option(1, min=1, help="Position of the first record"),
    max_records: typing.Optional[int] = typer.Option(
        None, "--max", min=1, help="Maximum number of records to return"
    ),
):
    """Search a catalogue for datasets"""
    url, client, page_size = _get_client(context, catalog)
    if workspace is not None:
        coroutine = client.workspace_search(
            url, start, max_records or page_size, text, workspace
        )
    else:
        coroutine = client.text_search(url, start, max_records or page_size, text)
    _echo_result(_run(coroutine))


@app.command()
def record(
    context: typer.Context,
    url: str = typer.Argument(..., help="GetRecordById URL"),
    connection: typing.Optional[str] = typer.Option(
        None, help="Saved connection to take credentials and timeout from"
    ),
):
    """Retrieve a single record

    Unless a connection is given, the saved connection whose catalogue URL
    matches the input URL is used, if any.
    """
    manager: conf.SettingsManager = context.obj["settings_manager"]
    if connection is not None:
        connection_settings = _find_connection(manager, connection)
    else:
        connection_settings = _find_connection_for_url(manager, url)
    if connection_settings is not None:
        client = CswCatalogClient.from_connection_settings(connection_settings)
    else:
        client = CswCatalogClient()
    _echo_result(_run(client.get_record_by_id(url)))


@app.command()
def probe(url: str):
    """Check whether the input URL is a CSW endpoint"""
    supported = is_csw_endpoint(url)
    typer.echo(json.dumps({"url": url, "csw": supported}))
    if not supported:
        raise typer.Exit(code=1)


@connections_app.command("list")
def list_connections(
    context: typer.Context,
    json_output: bool = typer.Option(
        False, "--json", help="Print each connection as a JSON document"
    ),
):
    manager: conf.SettingsManager = context.obj["settings_manager"]
    current = manager.get_current_connection_settings()
    for connection_settings in manager.list_connections():
        if json_output:
            typer.echo(connection_settings.to_json())
            continue
        is_current = current is not None and current.id == connection_settings.id
        marker = "*" if is_current else " "
        typer.echo(
            f"{marker} {connection_settings.name}\t{connection_settings.catalog_url}"
        )


@connections_app.command("add")
def add_connection(
    context: typer.Context,
    name: str,
    catalog_url: str,
    page_size: int = typer.Option(conf.DEFAULT_PAGE_SIZE, min=1),
    username: typing.Optional[str] = None,
    password: typing.Optional[str] = None,
    select: bool = typer.Option(False, help="Make this the current connection"),
):
    manager: conf.SettingsManager = context.obj["settings_manager"]
    if manager.find_connection(name) is not None:
        typer.echo(f"A connection named {name!r} already exists", err=True)
        raise typer.Exit(code=1)
    connection_settings = conf.ConnectionSettings(
        id=uuid.uuid4(),
        name=name,
        catalog_url=catalog_url,
        page_size=page_size,
        username=username,
        password=password,
    )
    manager.save_connection_settings(connection_settings)
    if select:
        manager.set_current_connection(connection_settings.id)
    _log(f"Added connection {name!r}", context=context)


@connections_app.command("remove")
def remove_connection(context: typer.Context, name: str):
    manager: conf.SettingsManager = context.obj["settings_manager"]
    connection_settings = _find_connection(manager, name)
    manager.delete_connection(connection_settings.id)
    _log(f"Removed connection {name!r}", context=context)


@connections_app.command("select")
def select_connection(context: typer.Context, name: str):
    manager: conf.SettingsManager = context.obj["settings_manager"]
    connection_settings = _find_connection(manager, name)
    manager.set_current_connection(connection_settings.id)
    _log(f"Current connection is now {name!r}", context=context)


def _find_connection(manager: conf.SettingsManager, name: str) -> conf.ConnectionSettings:
    connection_settings = manager.find_connection(name)
    if connection_settings is None:
        typer.echo(f"Unknown connection {name!r}", err=True)
        raise typer.Exit(code=1)
    return connection_settings


def _find_connection_for_url(
    manager: conf.SettingsManager, url: str
) -> typing.Optional[conf.ConnectionSettings]:
    # compare scheme, host and path only, query strings carry the record id
    target = urllib.parse.urlsplit(url)[:3]
    for connection_settings in manager.list_connections():
        if urllib.parse.urlsplit(connection_settings.catalog_url)[:3] == target:
            result = connection_settings
            break
    else:
        result = None
    return result


def _get_client(
    context: typer.Context, catalog: str
) -> typing.Tuple[str, CswCatalogClient, int]:
    manager: conf.SettingsManager = context.obj["settings_manager"]
    connection_settings = manager.find_connection(catalog)
    if connection_settings is not None:
        result = (
            connection_settings.catalog_url,
            CswCatalogClient.from_connection_settings(connection_settings),
            connection_settings.page_size,
        )
    else:
        result = (catalog, CswCatalogClient(), conf.DEFAULT_PAGE_SIZE)
    return result


def _run(coroutine: typing.Awaitable):
    try:
        result = asyncio.run(coroutine)
    except CatalogClientError as exc:
        typer.echo(json.dumps(exc.to_dict()), err=True)
        raise typer.Exit(code=2)
    return result


def _echo_result(
    result: typing.Optional[
        typing.Union[models.SearchResult, models.CatalogRecord, models.ProtocolError]
    ]
):
    if result is None:
        typer.echo(json.dumps(None))
    else:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
        if isinstance(result, models.ProtocolError):
            raise typer.Exit(code=1)


def _log(msg, *args, context: typing.Optional[typer.Context] = None, **kwargs):
    if context is not None:
        context_user_data = context.obj or {}
        verbose = context_user_data.get("verbose", True)
    else:
        verbose = True
    if verbose:
        typer.echo(msg, *args, **kwargs)
