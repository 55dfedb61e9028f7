"""IndexLens CLI application with Typer."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

import typer

from indexlens import __version__
from indexlens.bootstrap import bootstrap_application
from indexlens.config import get_settings, set_settings
from indexlens.core.errors import CollaboratorError, ValidationError
from indexlens.core.models import ListingPage, Resource, SortOrder, ViewId
from indexlens.core.presentation import (
    columns_for,
    format_field_value,
    page_window,
    total_pages,
)
from indexlens.core.tabs import TabState
from indexlens.utils.cli_output import json_response

if TYPE_CHECKING:
    from indexlens.bootstrap import ApplicationContainer

T = TypeVar("T")

app = typer.Typer(
    name="indexlens",
    help="Browse and edit search indices with cache-consistent views",
    add_completion=True,
    no_args_is_help=True,
)
indices_app = typer.Typer(help="List, inspect, create and delete indices")
docs_app = typer.Typer(help="Browse, search, create and delete documents")
app.add_typer(indices_app, name="indices")
app.add_typer(docs_app, name="docs")

JsonOption = Annotated[bool, typer.Option("--json", help="Output results as JSON")]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"IndexLens version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    url: Annotated[
        str | None,
        typer.Option("--url", help="Override the cluster URL"),
    ] = None,
    backend: Annotated[
        str | None,
        typer.Option("--backend", help="Backend adapter: elasticsearch or memory"),
    ] = None,
) -> None:
    """IndexLens - cache-consistent browser for search indices."""
    settings = get_settings()
    if url:
        settings.url = url
    if backend:
        if backend not in ("elasticsearch", "memory"):
            typer.secho(f"Error: Unknown backend '{backend}'", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2)
        settings.backend = backend  # type: ignore[assignment]
    set_settings(settings)

    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(operation: Callable[[ApplicationContainer], Awaitable[T]]) -> T:
    """Run ``operation`` against a fresh container and map errors to exit codes."""
    try:
        container = bootstrap_application()
    except ValueError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    async def session() -> T:
        try:
            return await operation(container)
        finally:
            await container.aclose()

    try:
        return asyncio.run(session())
    except ValidationError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc
    except CollaboratorError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _ensure_loaded(container: ApplicationContainer, view: ViewId) -> Any:
    """Return the active resource's data for ``view`` or raise its load error."""
    tabs = container.tabs
    if tabs.state(view) is TabState.ERROR:
        raise CollaboratorError(tabs.error(view) or f"Failed to load {view.value}")
    entry = tabs.entry(view)
    assert entry is not None
    return entry.data


async def _open_view(container: ApplicationContainer, resource_id: str, view: ViewId) -> Any:
    await container.tabs.select_resource(resource_id)
    await container.tabs.activate_view(view)
    return _ensure_loaded(container, view)


def _print_resources(resources: list[Resource]) -> None:
    typer.secho(
        f"{'health':<7} {'status':<6} {'index':<32} {'docs':>10} {'size':>10} {'pri':>4} {'rep':>4}",
        bold=True,
    )
    for resource in resources:
        typer.echo(
            f"{resource.health or '-':<7} {resource.status:<6} {resource.name:<32} "
            f"{resource.docs_count:>10} {resource.storage_size:>10} "
            f"{resource.primary_shards:>4} {resource.replica_shards:>4}"
        )


def _print_page(resource_id: str, page: ListingPage, current_page: int) -> None:
    pages = total_pages(page.total_hits)
    typer.secho(
        f"{resource_id}: {page.total_hits} hits, page {current_page} of {max(pages, 1)}",
        fg=typer.colors.BLUE,
    )
    if not page.rows:
        typer.secho("No documents found", fg=typer.colors.YELLOW)
        return

    columns = columns_for(page.rows)
    typer.secho(" | ".join(["_id", *columns]), bold=True)
    for row in page.rows:
        cells = [format_field_value(row.fields.get(column)) for column in columns]
        typer.echo(" | ".join([row.id, *cells]))

    if pages > 1:
        numbers = [
            f"[{number}]" if number == current_page else str(number)
            for number in page_window(current_page, pages)
        ]
        typer.echo(f"Pages: {' '.join(numbers)}")


def _page_payload(
    resource_id: str,
    page: ListingPage,
    container: ApplicationContainer,
    view: ViewId,
) -> dict[str, Any]:
    state = container.tabs.page_state(view)
    return {
        "index": resource_id,
        "page": state.page,
        "page_size": state.page_size,
        "total_pages": total_pages(page.total_hits, state.page_size),
        "total_hits": page.total_hits,
        "sort_field": state.sort_field,
        "sort_order": state.sort_order.value,
        "rows": [row.model_dump(mode="json") for row in page.rows],
    }


# ----------------------------------------------------------------------
# Cluster
# ----------------------------------------------------------------------


@app.command("health")
def health(json_output: JsonOption = False) -> None:
    """Show cluster health."""

    async def operation(container: ApplicationContainer):
        return await container.directory.cluster_health()

    result = _run(operation)
    if json_output:
        typer.echo(json_response("cluster_health", 1, **result.model_dump(mode="json")))
        return

    color = {
        "green": typer.colors.GREEN,
        "yellow": typer.colors.YELLOW,
        "red": typer.colors.RED,
    }.get(result.status, typer.colors.WHITE)
    typer.secho(f"Cluster {result.cluster_name}: {result.status}", fg=color)
    typer.echo(f"Nodes: {result.number_of_nodes} ({result.number_of_data_nodes} data)")
    typer.echo(f"Shards: {result.active_shards} active, {result.active_primary_shards} primary")
    if result.unassigned_shards:
        typer.secho(f"Unassigned shards: {result.unassigned_shards}", fg=typer.colors.YELLOW)


# ----------------------------------------------------------------------
# Indices
# ----------------------------------------------------------------------


@indices_app.command("list")
def indices_list(
    filter_term: Annotated[
        str | None,
        typer.Option("--filter", "-f", help="Only show indices whose name contains this text"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """List indices with health, document count and size."""

    async def operation(container: ApplicationContainer):
        await container.directory.refresh()
        if filter_term:
            return container.directory.filter(filter_term)
        return list(container.directory.snapshot)

    resources = _run(operation)
    if json_output:
        typer.echo(
            json_response(
                "index_list",
                1,
                filter=filter_term,
                indices=[resource.model_dump(mode="json") for resource in resources],
            )
        )
        return

    if not resources:
        typer.secho("No indices found", fg=typer.colors.YELLOW)
        return
    _print_resources(resources)


@indices_app.command("show")
def indices_show(
    name: Annotated[str, typer.Argument(help="Index name")],
    json_output: JsonOption = False,
) -> None:
    """Show the overview of one index."""

    async def operation(container: ApplicationContainer):
        return await _open_view(container, name, ViewId.OVERVIEW)

    resource: Resource = _run(operation)
    if json_output:
        typer.echo(json_response("index_overview", 1, **resource.model_dump(mode="json")))
        return
    _print_resources([resource])


@indices_app.command("create")
def indices_create(
    name: Annotated[str, typer.Argument(help="Index name")],
    shards: Annotated[int, typer.Option("--shards", help="Number of primary shards", min=1)] = 1,
    replicas: Annotated[int, typer.Option("--replicas", help="Number of replicas", min=0)] = 1,
    json_output: JsonOption = False,
) -> None:
    """Create an empty index."""

    async def operation(container: ApplicationContainer):
        return await container.mutations.create_resource(name, shards=shards, replicas=replicas)

    ack = _run(operation)
    if json_output:
        typer.echo(
            json_response(
                "index_created",
                1,
                index=name,
                shards=shards,
                replicas=replicas,
                acknowledged=ack.acknowledged,
            )
        )
        return
    typer.secho(f"✅ Created index {name}", fg=typer.colors.GREEN)


@indices_app.command("delete")
def indices_delete(
    name: Annotated[str, typer.Argument(help="Index name")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    json_output: JsonOption = False,
) -> None:
    """Delete an index and all of its documents."""
    if not yes:
        typer.confirm(
            f"Delete index '{name}' and all its documents? This cannot be undone.",
            abort=True,
        )

    async def operation(container: ApplicationContainer):
        return await container.mutations.delete_resource(name)

    ack = _run(operation)
    if json_output:
        typer.echo(json_response("index_deleted", 1, index=name, acknowledged=ack.acknowledged))
        return
    typer.secho(f"✅ Deleted index {name}", fg=typer.colors.GREEN)


def _show_definition(name: str, view: ViewId, schema_id: str, json_output: bool) -> None:
    async def operation(container: ApplicationContainer):
        return await _open_view(container, name, view)

    data = _run(operation)
    if json_output:
        typer.echo(json_response(schema_id, 1, index=name, **{view.value: data}))
        return
    typer.echo(json.dumps(data, indent=2, default=str))


@indices_app.command("mappings")
def indices_mappings(
    name: Annotated[str, typer.Argument(help="Index name")],
    json_output: JsonOption = False,
) -> None:
    """Print the field mappings of an index."""
    _show_definition(name, ViewId.MAPPINGS, "index_mappings", json_output)


@indices_app.command("settings")
def indices_settings(
    name: Annotated[str, typer.Argument(help="Index name")],
    json_output: JsonOption = False,
) -> None:
    """Print the settings of an index."""
    _show_definition(name, ViewId.SETTINGS, "index_settings", json_output)


# ----------------------------------------------------------------------
# Documents
# ----------------------------------------------------------------------


@docs_app.command("list")
def docs_list(
    name: Annotated[str, typer.Argument(help="Index name")],
    page: Annotated[int, typer.Option("--page", "-p", help="Page number (1-based)", min=1)] = 1,
    sort: Annotated[str | None, typer.Option("--sort", help="Field to sort by")] = None,
    order: Annotated[
        SortOrder,
        typer.Option("--order", help="Sort direction", case_sensitive=False),
    ] = SortOrder.ASC,
    json_output: JsonOption = False,
) -> None:
    """Browse documents of an index, twenty per page."""

    async def operation(container: ApplicationContainer):
        await _open_view(container, name, ViewId.DOCUMENTS)
        if sort:
            await container.tabs.set_sort(ViewId.DOCUMENTS, sort, order)
            _ensure_loaded(container, ViewId.DOCUMENTS)
        if page != 1:
            await container.tabs.set_page(ViewId.DOCUMENTS, page)
        listing = _ensure_loaded(container, ViewId.DOCUMENTS)
        return listing, _page_payload(name, listing, container, ViewId.DOCUMENTS)

    listing, payload = _run(operation)
    if json_output:
        typer.echo(json_response("document_page", 1, **payload))
        return
    _print_page(name, listing, payload["page"])


@docs_app.command("search")
def docs_search(
    name: Annotated[str, typer.Argument(help="Index name")],
    query: Annotated[str, typer.Argument(help="Search body as JSON")],
    page: Annotated[int, typer.Option("--page", "-p", help="Page number (1-based)", min=1)] = 1,
    json_output: JsonOption = False,
) -> None:
    """Run a JSON search body against an index."""

    async def operation(container: ApplicationContainer):
        await container.tabs.select_resource(name)
        await container.tabs.submit_search(query)
        _ensure_loaded(container, ViewId.SEARCH)
        if page != 1:
            await container.tabs.set_page(ViewId.SEARCH, page)
        result = _ensure_loaded(container, ViewId.SEARCH)
        payload = _page_payload(name, result, container, ViewId.SEARCH)
        payload["query"] = json.loads(result.query_text)
        return result, payload

    result, payload = _run(operation)
    if json_output:
        typer.echo(json_response("search_results", 1, **payload))
        return
    _print_page(name, result, payload["page"])


@docs_app.command("create")
def docs_create(
    name: Annotated[str, typer.Argument(help="Index name")],
    document: Annotated[str, typer.Argument(help="Document body as JSON")],
    doc_id: Annotated[
        str | None,
        typer.Option("--id", help="Document id (assigned by the backend when omitted)"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Index a new document."""

    async def operation(container: ApplicationContainer):
        return await container.mutations.create_document(name, document, doc_id)

    ack = _run(operation)
    if json_output:
        typer.echo(json_response("document_created", 1, index=name, id=ack.id))
        return
    typer.secho(f"✅ Created document {ack.id or '(auto id)'} in {name}", fg=typer.colors.GREEN)


@docs_app.command("delete")
def docs_delete(
    name: Annotated[str, typer.Argument(help="Index name")],
    ids: Annotated[list[str], typer.Argument(help="Ids of the documents to delete")],
    json_output: JsonOption = False,
) -> None:
    """Delete documents by id."""

    async def operation(container: ApplicationContainer):
        return await container.mutations.delete_documents(name, ids)

    deleted = _run(operation)
    requested = len(set(ids))
    if json_output:
        typer.echo(
            json_response("documents_deleted", 1, index=name, requested=requested, deleted=deleted)
        )
        return
    if deleted < requested:
        typer.secho(
            f"Deleted {deleted} of {requested} documents from {name}",
            fg=typer.colors.YELLOW,
        )
    else:
        typer.secho(f"✅ Deleted {deleted} documents from {name}", fg=typer.colors.GREEN)


@docs_app.command("clear")
def docs_clear(
    name: Annotated[str, typer.Argument(help="Index name")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    json_output: JsonOption = False,
) -> None:
    """Delete every document of an index, keeping the index."""
    if not yes:
        typer.confirm(f"Delete all documents in '{name}'? This cannot be undone.", abort=True)

    async def operation(container: ApplicationContainer):
        return await container.mutations.clear_all_documents(name)

    deleted = _run(operation)
    if json_output:
        typer.echo(json_response("documents_cleared", 1, index=name, deleted=deleted))
        return
    typer.secho(f"✅ Deleted {deleted} documents from {name}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
