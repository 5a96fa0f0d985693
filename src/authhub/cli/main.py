"""CLI entry point."""

import typer
from rich.console import Console
from rich.table import Table

from authhub.provider_factory import supported_kinds
from authhub.settings import settings
from authhub.version import __version__

app = typer.Typer(name="authhub", help="Cookie/JWT authentication service CLI")
console = Console()


@app.command()
def serve(
    host: str = typer.Option(settings.host, help="API server host"),
    port: int = typer.Option(settings.port, help="API server port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
) -> None:
    """Start the auth API server.

    Configuration comes from AUTHHUB_* environment variables (or .env);
    AUTHHUB_SECRET is required.

    Examples:
        AUTHHUB_SECRET=change-me AUTHHUB_PROVIDERS=dev authhub serve
        authhub serve --host 127.0.0.1 --port 8080
    """
    import uvicorn

    if not settings.secret:
        console.print("[red]AUTHHUB_SECRET is not set[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Starting authhub server on {host}:{port}[/green]")
    console.print(f"[dim]Providers:[/dim] {', '.join(settings.provider_list) or 'none'}")
    console.print(f"[dim]Login:[/dim] http://{host}:{port}/auth/{{provider}}/login")

    uvicorn.run(
        "authhub.api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def providers() -> None:
    """List supported provider kinds and which are configured."""
    configured = set(settings.provider_list)

    table = Table(title="Provider kinds")
    table.add_column("Kind", style="cyan")
    table.add_column("Configured")
    table.add_column("Client ID", style="dim")

    for kind in supported_kinds():
        table.add_row(
            kind,
            "[green]yes[/green]" if kind in configured else "no",
            settings.client_ids.get(kind, ""),
        )

    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    typer.echo(f"authhub v{__version__}")


if __name__ == "__main__":
    app()
