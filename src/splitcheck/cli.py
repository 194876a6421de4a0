"""Command-line interface for splitcheck."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from splitcheck.config import get_settings
from splitcheck.logging_utils import configure_logging
from splitcheck.ocr import (
    AllProvidersFailedError,
    NoReceiptDataError,
    ReceiptScanner,
    build_receipt_provider,
    parse_receipt_text,
)
from splitcheck.ocr.pipeline import MANUAL_ENTRY_MESSAGE
from splitcheck.server.run import ServerOptions, serve as serve_api

app = typer.Typer(help="Receipt extraction commands for bill splitting.")


def _dump(payload: dict, pretty: bool) -> str:
    return json.dumps(payload, indent=2 if pretty else None, sort_keys=pretty)


@app.command()
def scan(
    image_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Receipt image or PDF."),
    starting_order: int = typer.Option(0, "--starting-order", min=0, help="Order number of the first item."),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
    progress: bool = typer.Option(False, "--progress", help="Report local OCR progress on stderr."),
) -> None:
    """
    Extract line items from a receipt image using the configured provider chain.
    """

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, [settings.azure_key or ""])

    def _report(fraction: float) -> None:
        typer.echo(f"OCR progress: {round(fraction * 100)}%", err=True)

    provider = build_receipt_provider(settings, progress=_report if progress else None)
    scanner = ReceiptScanner(provider=provider, tolerance=settings.reconciliation_tolerance)
    try:
        result = asyncio.run(scanner.scan(image_path.read_bytes(), starting_order=starting_order))
    except NoReceiptDataError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc
    except AllProvidersFailedError as exc:
        typer.secho(MANUAL_ENTRY_MESSAGE, fg=typer.colors.RED, err=True)
        typer.secho(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(_dump(result.model_dump(mode="json"), pretty))
    if result.reconciliation.requires_review:
        typer.secho(
            f"Review required: {result.reconciliation.message}",
            fg=typer.colors.YELLOW,
            err=True,
        )


@app.command()
def parse(
    text_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recognized receipt text."),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
) -> None:
    """Parse already-recognized receipt text without running OCR."""

    data = parse_receipt_text(text_path.read_text(encoding="utf-8"))
    typer.echo(_dump(data.model_dump(mode="json", exclude={"raw"}), pretty))


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", help="Port to bind."),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes."),
) -> None:
    """Serve the HTTP API."""

    defaults = ServerOptions.from_env()
    serve_api(
        ServerOptions(
            host=host or defaults.host,
            port=port or defaults.port,
            reload=reload or defaults.reload,
            duration=None if reload else defaults.duration,
        )
    )


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the ``splitcheck`` script."""
    app(prog_name="splitcheck", args=argv)


if __name__ == "__main__":
    main()
