# cli.py
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

import typer
from botocore.exceptions import BotoCoreError

from .config import DEFAULT_CONFIG, MigrationConfig, load_config
from .core import client_for, collect_objects
from .download import is_placeholder
from .errors import ConfigError, MigrationError, setup_logging
from .pipeline import MigrationPipeline
from .utils import human_bytes

app = typer.Typer(add_completion=False, help="Migrate every object of one S3-compatible bucket to another")

COMPLETION_MESSAGE = "Download and upload complete. Deleted local files and directory."

# phase -> what was being done, for the fatal error message
PHASE_MESSAGES = {
    "config": "reading config file",
    "staging": "creating download directory",
    "download": "downloading files",
    "upload": "uploading files",
    "cleanup": "deleting files and directory",
}

# ---------------- Settings kept in Typer context ----------------
@dataclass
class Settings:
    verbose: bool = False
    log_file: Optional[str] = None

# ---------------- Helpers ----------------
def _fail(phase: str, err: Exception) -> None:
    typer.echo(f"Error {PHASE_MESSAGES.get(phase, phase)}: {err}", err=True)
    raise typer.Exit(code=1)

def _load_cfg(config_path: Optional[str]) -> MigrationConfig:
    """
    Load and validate the YAML config. Unlike optional settings,
    a missing or malformed file is fatal.
    """
    try:
        return load_config(config_path or DEFAULT_CONFIG)
    except ConfigError as e:
        _fail("config", e)

def _with_overrides(cfg: MigrationConfig, **overrides) -> MigrationConfig:
    changed = {k: v for k, v in overrides.items() if v is not None}
    if not changed:
        return cfg
    return replace(cfg, options=replace(cfg.options, **changed))

# ---------------- Root options (global) ----------------
@app.callback()
def _root(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """
    Set up global Settings and logging once.
    """
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level=level, logfile=log_file)
    ctx.obj = Settings(verbose=verbose, log_file=log_file)

# ---------------- MIGRATE ----------------
@app.command("migrate")
def cmd_migrate(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    progress: Optional[bool] = typer.Option(None, "--progress/--no-progress", help="Show progress bars"),
    keep_staging_on_failure: Optional[bool] = typer.Option(
        None,
        "--keep-staging-on-failure/--remove-staging-on-failure",
        help="Preserve downloaded files if the run fails",
    ),
    max_workers: Optional[int] = typer.Option(None, min=1, help="Parallel download workers"),
    show_errors: bool = typer.Option(False, "--show-errors/--no-show-errors", help="Print keys that failed to download"),
):
    cfg = _with_overrides(
        _load_cfg(config),
        progress=progress,
        keep_staging_on_failure=keep_staging_on_failure,
        max_workers=max_workers,
    )
    pipeline = MigrationPipeline(cfg)
    try:
        res = pipeline.run()
    except ConfigError as e:
        _fail("config", e)
    except MigrationError as e:
        _fail(e.phase, e)

    if show_errors:
        for e in res.download_errors:
            typer.echo(f"[DOWNLOAD ERROR] {e}")

    typer.echo(COMPLETION_MESSAGE)

# ---------------- PLAN ----------------
@app.command("plan")
def cmd_plan(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """
    List the source bucket and show what a migration would transfer (dry-run).
    """
    cfg = _load_cfg(config)
    try:
        s3 = client_for(cfg.source, cfg.options)
    except BotoCoreError as e:
        _fail("config", e)
    try:
        objects = collect_objects(s3, cfg.source.bucket, page_size=cfg.options.page_size)
    except MigrationError as e:
        _fail(e.phase, e)

    total_bytes = 0
    planned = 0
    for obj in objects:
        if is_placeholder(obj, cfg.options.empty_objects):
            typer.echo(f"[SKIP] {obj.key}")
            continue
        planned += 1
        total_bytes += obj.size
        typer.echo(f"{obj.key} ({human_bytes(obj.size)})")

    typer.echo(
        f"Planned: {planned} of {len(objects)} objects, {human_bytes(total_bytes)}, "
        f"s3://{cfg.source.bucket} -> s3://{cfg.destination.bucket} via {cfg.staging_path}"
    )


if __name__ == "__main__":
    app()
