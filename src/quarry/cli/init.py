"""quarry init — create the project database, config and upload directory.

Creates:
  .quarry.db    — empty knowledge base with schema (storage.db_path)
  quarry.yaml   — project config with the default local models
  uploads/      — stored copies of uploaded documents (storage.uploads_dir)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from quarry.cli.errors import err_config
from quarry.config import PROJECT_CONFIG_NAME, ConfigError, load_config, write_project_config
from quarry.db.connection import Database
from quarry.db.schema import initialize

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
) -> None:
    """Initialize a Quarry project (database, quarry.yaml, uploads/)."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    existed = (project_dir / PROJECT_CONFIG_NAME).exists()
    config_path = write_project_config(project_dir)
    if existed:
        console.print(f"  [dim]↷ {config_path.name} already exists — kept[/]")
    else:
        console.print(f"  [green]✓[/] {config_path.name}")

    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    db_path = project_dir / cfg.storage.db_path
    with Database(db_path) as conn:
        initialize(conn)
    console.print(f"  [green]✓[/] {cfg.storage.db_path}")

    (project_dir / cfg.storage.uploads_dir).mkdir(parents=True, exist_ok=True)
    console.print(f"  [green]✓[/] {cfg.storage.uploads_dir}/")

    console.print(f"\n[bold green]✓ Quarry project initialized in {project_dir}.[/]")
    console.print("\nNext steps:")
    console.print('  1. quarry area create "Handbooks"           (create a knowledge area)')
    console.print("  2. quarry doc upload <AREA_ID> <FILE>       (upload + analyze a document)")
    console.print("  3. quarry chat create <AREA_ID>             (start a conversation)")
    console.print('  4. quarry ask <CHAT_ID> "your question"     (ask grounded questions)')
