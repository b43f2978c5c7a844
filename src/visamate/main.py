"""
VisaMate - CLI Entry Point.

Usage:
    visamate serve           Run the API server
    visamate health          Check configuration
    visamate steps           Show the onboarding tour steps
    visamate --help          Show help
"""

import logging

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="visamate",
    help="VisaMate - visa application tracker backend.",
    add_completion=False,
)
console = Console()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the VisaMate API with uvicorn."""
    import uvicorn

    from visamate.config import get_settings

    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run("visamate.web.app:app", host=host, port=port, reload=reload, log_config=None)


@app.command()
def health() -> None:
    """Check system health and configuration."""
    from visamate.config import get_settings

    load_dotenv()
    console.print("\n[bold]VisaMate Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.visamate_env}")
        console.print(f"   Log level: {settings.log_level}")

        if settings.supabase_url.startswith("https://"):
            console.print("✅ Supabase URL configured")
        else:
            console.print("❌ Supabase URL missing or invalid")

        if settings.supabase_service_role_key:
            console.print("✅ Supabase service role key configured")
        else:
            console.print("ℹ️  No service role key, server calls use the anon key")

        if settings.openai_api_key:
            console.print("✅ OpenAI API key configured")
        else:
            console.print("ℹ️  Document generation disabled (no OPENAI_API_KEY)")

        console.print(f"✅ Flag store: {settings.flag_store}", end="")
        if settings.flag_store == "file":
            console.print(f" ({settings.flag_store_path})")
        else:
            console.print()

        console.print("\n[green]All checks passed![/green]")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def steps() -> None:
    """Print the onboarding tour step table."""
    from onboarding.steps import TOUR_STEPS

    table = Table(title="Onboarding tour")
    table.add_column("#", justify="right")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("Anchor")
    for i, step in enumerate(TOUR_STEPS, start=1):
        table.add_row(str(i), step.id, step.title, step.anchor or "[dim]centered[/dim]")
    console.print(table)


if __name__ == "__main__":
    app()
