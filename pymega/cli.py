"""CLI interface for pymega."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional, cast

import click

from .cli_progress import run_sync_with_progress
from .config import Config, get_config
from .exceptions import MegaConfigError, MegaError, MegaRemoteError
from .local import LocalStore
from .output import OutputFormatter
from .remote import DirectoryRemoteStore
from .sync import SyncDirection, SyncEngine, SyncOptions
from .utils import ROOT_PATH, format_size, join_remote_path, normalize_remote_path

logger = logging.getLogger(__name__)


def _open_store(ctx: Any, out: OutputFormatter) -> DirectoryRemoteStore:
    """Open the remote store selected by --store or the config file.

    Exits with status 1 if no store is configured or it cannot be opened.
    """
    store_path: Optional[Path] = ctx.obj.get("store_path")
    cfg: Config = ctx.obj["config"]
    if store_path is None:
        store_path = cfg.store_path
    if store_path is None:
        out.error("No remote store configured.")
        out.info("Use --store, set PYMEGA_STORE or add [Store] Path to ~/.megarc")
        ctx.exit(1)

    store: Optional[DirectoryRemoteStore] = None
    try:
        store = DirectoryRemoteStore(Path(store_path))
    except MegaRemoteError as e:
        out.error(str(e))
    if store is None:
        ctx.exit(1)
    return cast(DirectoryRemoteStore, store)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Load configuration from this file",
)
@click.option("--no-config", is_flag=True, help="Do not load any config file")
@click.option(
    "--store",
    envvar="PYMEGA_STORE",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory of the remote store",
)
@click.version_option(package_name="pymega")
@click.pass_context
def main(
    ctx: Any,
    quiet: bool,
    json: bool,
    verbose: bool,
    config_path: Optional[Path],
    no_config: bool,
    store: Optional[Path],
) -> None:
    """pymega - Synchronize local directories with a remote storage tree."""
    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pymega").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        if config_path is not None:
            cfg = Config(config_path)
        elif no_config:
            cfg = Config(load_file=False)
        else:
            cfg = get_config()
    except MegaConfigError as e:
        OutputFormatter(quiet=quiet).error(str(e))
        ctx.exit(1)
        return

    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    ctx.obj["store_path"] = store
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet, colors=cfg.colors)
    ctx.obj["verbose"] = verbose


@main.command()
@click.option("--remote", "-r", "remote_path", help="Remote directory")
@click.option(
    "--local",
    "-l",
    "local_path",
    type=click.Path(path_type=Path),
    help="Local directory",
)
@click.option(
    "--download",
    "-d",
    is_flag=True,
    help="Download files from the remote store (default is upload)",
)
@click.option(
    "--delete", is_flag=True, help="Delete files missing on the source side"
)
@click.option(
    "--delete-only",
    is_flag=True,
    help="Only delete files missing on the source side, transfer nothing",
)
@click.option(
    "--always", is_flag=True, help="Transfer files even if they appear identical"
)
@click.option(
    "--force", is_flag=True, help="Overwrite directories with files and vice versa"
)
@click.option(
    "--dryrun",
    "-n",
    "dry_run",
    is_flag=True,
    help="Show what would be done without changing anything",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress display")
@click.option(
    "--ignore-errors",
    is_flag=True,
    help="Continue with the next file after an error",
)
@click.pass_context
def sync(
    ctx: Any,
    remote_path: Optional[str],
    local_path: Optional[Path],
    download: bool,
    delete: bool,
    delete_only: bool,
    always: bool,
    force: bool,
    dry_run: bool,
    no_progress: bool,
    ignore_errors: bool,
) -> None:
    """Synchronize a local directory with a remote folder.

    Uploads by default: the remote folder is made to match the local
    directory. With --download the local directory is made to match the
    remote folder.

    Each decision is printed on its own line: "F" for a file transfer,
    "D" for a created directory and "R" for a removed or replaced entry.

    Examples:
        pymega sync -l ~/photos -r /Root/photos            # Upload
        pymega sync -d -l ~/photos -r /Root/photos         # Download
        pymega sync -n --delete -l ~/photos -r /Root/photos  # Preview
    """
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]

    if not local_path or not remote_path:
        out.error("You must specify local and remote paths")
        ctx.exit(1)
        return

    options = SyncOptions(
        remote=remote_path,
        local=local_path,
        direction=SyncDirection.DOWNLOAD if download else SyncDirection.UPLOAD,
        delete=delete,
        delete_only=delete_only,
        always=always,
        force=force,
        dry_run=dry_run,
        ignore_errors=ignore_errors or cfg.ignore_errors,
        no_progress=no_progress or cfg.no_progress or out.quiet,
    )

    try:
        options.validate()
    except MegaError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    store = _open_store(ctx, out)
    engine = SyncEngine(store, LocalStore(), out)
    show_progress = not out.json_output and sys.stdout.isatty()

    exit_code = 0
    try:
        report = run_sync_with_progress(engine, options, show_progress)
        if out.json_output:
            out.output_json(
                {"success": report.success, "stats": report.stats.to_dict()}
            )
        if not report.success:
            exit_code = 1
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user")
        exit_code = 130
    except MegaError as e:
        out.error(str(e))
        exit_code = 1

    if exit_code:
        ctx.exit(exit_code)


@main.command()
@click.argument("remote_paths", nargs=-1, required=True)
@click.pass_context
def mkdir(ctx: Any, remote_paths: tuple[str, ...]) -> None:
    """Create directories in the remote store.

    REMOTE_PATHS: One or more remote paths, e.g. /Root/docs

    A failing path is reported and the remaining paths are still created.
    """
    out: OutputFormatter = ctx.obj["out"]
    store = _open_store(ctx, out)

    exit_code = 0
    created = []
    for path in remote_paths:
        try:
            node = store.make_directory(path)
        except MegaRemoteError as e:
            out.error(f"Can't create directory {path}: {e}")
            exit_code = 1
            continue
        created.append(node.path)
        logger.debug(f"Created remote directory {node.path}")

    try:
        store.save()
    except MegaRemoteError as e:
        out.error(str(e))
        exit_code = 1

    if out.json_output:
        out.output_json({"created": created})

    if exit_code:
        ctx.exit(exit_code)


@main.command()
@click.argument("remote_path", default=ROOT_PATH)
@click.pass_context
def ls(ctx: Any, remote_path: str) -> None:
    """List one level of a remote folder.

    REMOTE_PATH: Remote folder to list (default: /Root)
    """
    out: OutputFormatter = ctx.obj["out"]
    store = _open_store(ctx, out)
    remote_path = normalize_remote_path(remote_path)

    try:
        children = store.list_children(remote_path)
    except MegaRemoteError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    children.sort(key=lambda node: (not node.is_container, node.name))

    if out.json_output:
        out.output_json([node.to_dict() for node in children])
        return

    for node in children:
        marker = "d" if node.is_container else "-"
        size = "" if node.is_container else format_size(node.size)
        out.print(
            f"{marker} {size:>10} {node.effective_timestamp:>12} "
            f"{join_remote_path(remote_path, node.name)}"
        )
    if not children:
        out.info("Folder is empty")


if __name__ == "__main__":
    main()
