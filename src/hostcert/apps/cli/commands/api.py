# src/hostcert/apps/cli/commands/api.py
import typer
import uvicorn

from hostcert.services.logging import configure_logging
from hostcert.services.settings import load_settings

app = typer.Typer(help="HTTP API for hostname SSL provisioning")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(None, "--port", help="defaults to PORT / settings.port"),
    reload: bool = typer.Option(False, "--reload", help="auto-reload for development"),
):
    """Run the HTTP API (FastAPI via uvicorn)."""
    settings = load_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "hostcert.apps.api.server:app",
        host=host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
