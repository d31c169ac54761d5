"""contentgraph CLI with Rich output.

Provides commands for:
- Store status
- Full and single-item sync
- Graph, tag-cluster and path inspection
- Running the HTTP server

Usage:
    contentgraph status                   # Show store configuration and health
    contentgraph sync USER_ID             # Rebuild a user's graph
    contentgraph sync-content CONTENT_ID  # Sync one content item
    contentgraph graph USER_ID            # Communities and central nodes
    contentgraph tags USER_ID             # Tag clusters
    contentgraph path USER_ID A B         # Shortest similarity path
    contentgraph serve                    # Run the API server
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

app = typer.Typer(
    name="contentgraph",
    help="contentgraph - graph mirror of content, tags and similarity",
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console()


def print_banner():
    """Print contentgraph banner."""
    banner = Text()
    banner.append("content", style="bold cyan")
    banner.append("graph", style="cyan")
    console.print(Panel(banner, border_style="cyan", box=box.ROUNDED))


@contextmanager
def _service() -> Iterator["GraphService"]:
    """Build a GraphService for one command and close the driver afterwards."""
    from contentgraph.backend.services import GraphService
    from contentgraph.config import Config
    from contentgraph.db.graph_factory import create_graph_client
    from contentgraph.db.vector_source import LanceVectorSource

    config = Config()
    service = GraphService(config, create_graph_client(config), LanceVectorSource(config))
    try:
        yield service
    finally:
        service.close()


def _require_graph(service) -> None:
    if not service.graph_enabled:
        console.print("[red]Graph store not configured or unreachable.[/red]")
        console.print("Set NEO4J_URI, NEO4J_USER and NEO4J_PASSWORD (or the CONTENTGRAPH_ variants).")
        raise typer.Exit(1)


@app.command()
def status():
    """Show store configuration and availability."""
    from contentgraph.config import Config
    from contentgraph.db.graph_factory import get_backend_info

    print_banner()

    config = Config()
    info = get_backend_info(config)

    table = Table(title="Stores", box=box.ROUNDED)
    table.add_column("Store", style="cyan")
    table.add_column("Configured", justify="center")
    table.add_column("Healthy", justify="center")
    table.add_column("Detail", style="dim")

    with _service() as service:
        healthy = service.graph.health_check() if service.graph_enabled else False
        table.add_row(
            "Neo4j",
            "[green]Yes[/green]" if info["configured"] else "[yellow]No[/yellow]",
            "[green]Yes[/green]" if healthy else "[red]No[/red]",
            f"{info['uri'] or '-'} ({info['database']})",
        )
        counts = service.source.count_rows()
        table.add_row(
            "LanceDB",
            "[green]Yes[/green]",
            "[green]Yes[/green]",
            f"{counts['content']} content, {counts['embeddings']} embeddings",
        )

    console.print(table)
    if not info["configured"]:
        console.print("\n[dim]Graph mirror disabled: every sync and query is a no-op.[/dim]")


@app.command()
def sync(user_id: str = typer.Argument(..., help="Owner whose graph is rebuilt")):
    """Clear and rebuild a user's graph from the store of record."""
    from contentgraph.errors import ContentGraphError
    from contentgraph.models import SyncStatus

    with _service() as service:
        _require_graph(service)
        with console.status(f"Rebuilding graph for {user_id}..."):
            try:
                result = service.full_sync(user_id)
            except ContentGraphError as e:
                console.print(f"[red]Full sync failed:[/red] {e}")
                console.print("[dim]The graph may be partially rebuilt; run the command again.[/dim]")
                raise typer.Exit(1)

    if result.status == SyncStatus.UNAVAILABLE:
        console.print("[red]Graph store unavailable[/red], nothing was rebuilt")
        raise typer.Exit(1)

    console.print(
        f"[green]Synced[/green] {result.nodes_created} nodes, {result.edges_created} edges"
    )


@app.command("sync-content")
def sync_content(content_id: str = typer.Argument(..., help="Content item to sync")):
    """Upsert one content node and refresh its similarity edges."""
    with _service() as service:
        results = service.incremental.sync_content(content_id)

    table = Table(box=box.SIMPLE)
    table.add_column("Operation", style="cyan")
    table.add_column("Status")
    table.add_column("Error", style="dim")
    for result in results:
        style = "green" if result.ok else "red"
        table.add_row(result.operation, f"[{style}]{result.status.value}[/{style}]", result.error or "-")
    console.print(table)

    if not all(result.ok for result in results):
        raise typer.Exit(1)


@app.command()
def graph(
    user_id: str = typer.Argument(..., help="Owner of the graph"),
    min_similarity: Optional[float] = typer.Option(None, "--min-similarity", "-s", help="Edge threshold"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum edges"),
    top: int = typer.Option(10, "--top", help="Central nodes to list"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Layout seed"),
):
    """Show communities and the most central nodes of a user's graph."""
    from contentgraph.analytics import AnalyticsSettings, analyze_graph

    with _service() as service:
        data, origin = service.get_graph(user_id, min_similarity=min_similarity, limit=limit)

    if data.is_empty:
        console.print("[yellow]No similarity edges above the threshold.[/yellow]")
        return

    analyzed = analyze_graph(data, AnalyticsSettings(seed=seed))
    console.print(
        f"[bold]{len(analyzed.nodes)}[/bold] nodes, [bold]{len(analyzed.edges)}[/bold] edges, "
        f"[bold]{analyzed.community_count}[/bold] communities [dim](from {origin})[/dim]"
    )

    table = Table(title="Most central", box=box.ROUNDED)
    table.add_column("Title", style="cyan")
    table.add_column("Type")
    table.add_column("Community", justify="right")
    table.add_column("PageRank", justify="right")
    for node in sorted(analyzed.nodes, key=lambda n: -n.pagerank)[:top]:
        table.add_row(node.title, node.type, str(node.community), f"{node.pagerank:.4f}")
    console.print(table)


@app.command()
def tags(
    user_id: str = typer.Argument(..., help="Owner of the content"),
    min_count: int = typer.Option(2, "--min-count", "-m", help="Minimum items per tag"),
):
    """List tags shared by several content items."""
    with _service() as service:
        _require_graph(service)
        clusters = service.queries.get_tag_clusters(user_id, min_count=min_count)

    if clusters is None:
        console.print("[red]Tag query failed, see logs.[/red]")
        raise typer.Exit(1)
    if not clusters:
        console.print("[yellow]No shared tags.[/yellow]")
        return

    table = Table(title="Tag clusters", box=box.ROUNDED)
    table.add_column("Tag", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Content", style="dim")
    for cluster in clusters:
        table.add_row(cluster.tag, str(cluster.count), ", ".join(cluster.content_ids[:5]))
    console.print(table)


@app.command()
def path(
    user_id: str = typer.Argument(..., help="Owner of the content"),
    source: str = typer.Argument(..., help="Start content id"),
    target: str = typer.Argument(..., help="End content id"),
):
    """Show the shortest similarity path between two content items."""
    with _service() as service:
        _require_graph(service)
        data = service.queries.get_shortest_path(source, target, user_id)

    if data is None:
        console.print("[red]Path query failed, see logs.[/red]")
        raise typer.Exit(1)
    if not data.edges:
        console.print("[yellow]No path.[/yellow]")
        return

    titles = {node.id: node.title for node in data.nodes}
    for edge in data.edges:
        console.print(
            f"  {titles.get(edge.source, edge.source)} [dim]--{edge.similarity:.2f}--[/dim] "
            f"{titles.get(edge.target, edge.target)}"
        )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Run the HTTP API server."""
    import uvicorn

    from contentgraph.backend.app import create_app
    from contentgraph.backend.config import get_config

    config = get_config()
    uvicorn.run(
        create_app(),
        host=host or config.host,
        port=port or config.port,
        log_level="info",
    )


@app.command()
def version():
    """Show contentgraph version."""
    from contentgraph import __version__

    console.print(f"contentgraph [cyan]{__version__}[/cyan]")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
