from __future__ import annotations

import logging
import mimetypes
import shutil
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import AppConfig, dump_config, load_config
from ..core import ConversionService
from ..detection import content_type_for
from ..errors import ConversionError
from ..models import ConversionOptions, RawUpload
from ..settings import get_settings
from ..storage import TempResourceManager
from ..utils import iter_files

console = Console()

app = typer.Typer(help="Convert images and ZIP archives into a single PDF")


def _load_config(path: Path | None) -> AppConfig:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.WARNING))
    config = load_config(path or settings.config_path)
    if settings.temp_root is not None:
        config.runtime.temp_root = settings.temp_root
    return config


def _local_upload(path: Path) -> RawUpload:
    content_type = mimetypes.guess_type(path.name)[0] or content_type_for(path.name)
    return RawUpload.from_path(path, content_type=content_type, owned=False)


@app.command()
def convert(
    paths: list[Path],
    output: Path | None = typer.Option(None, "--output", "-o", help="Where to write the PDF"),
    quality: str = typer.Option("medium", "--quality", help="low, medium or high"),
    page_size: str = typer.Option("a4", "--page-size", help="a4, letter or legal"),
    show_filenames: bool = typer.Option(False, "--show-filenames", help="Caption each page"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    storage = TempResourceManager.from_config(cfg.runtime.temp_root, cfg.runtime.janitor)
    storage.ensure_layout()
    service = ConversionService(cfg, storage)
    try:
        options = ConversionOptions.from_form(
            {"imageQuality": quality, "pageSize": page_size, "showFilenames": show_filenames},
            cfg.quality,
        )
        uploads = [_local_upload(path) for path in iter_files(paths)]
        result = service.convert(uploads, options)
    except ConversionError as exc:
        console.print(f"[red]Conversion failed[/red]: {exc.code} - {exc}")
        raise typer.Exit(1) from exc

    document = result.document
    destination = output or Path.cwd() / document.download_name
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(document.path, destination)
    finally:
        storage.release(document.path)

    table = Table(title="Uploads")
    table.add_column("File")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Images")
    table.add_column("Reason")
    for outcome in result.outcomes:
        table.add_row(
            outcome.filename,
            outcome.kind.value,
            outcome.status.value,
            str(len(outcome.images)),
            outcome.reason or "-",
        )
    console.print(table)
    console.print(f"[green]Success[/green]: {document.page_count} pages written to {destination}")


@app.command()
def sweep(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    storage = TempResourceManager.from_config(cfg.runtime.temp_root, cfg.runtime.janitor)
    storage.ensure_layout()
    removed = storage.sweep()
    console.print(f"Removed {removed} stale entries from {storage.root}.")


@app.command("config")
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    console.print_json(dump_config(_load_config(config)))


if __name__ == "__main__":
    app()
