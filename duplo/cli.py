"""
duplo CLI: list, fetch, push and delete files on a duplo storage server.

Files are addressed by their number in ``duplo list``:

    duplo list
    duplo get 1 3
    duplo get --view 2
    duplo push notes.txt photo.png
    duplo del 4
    duplo text "title" "body"
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich import filesize
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.status import Status
from rich.theme import Theme

from . import __version__
from .client import Endpoints, StorageClient, build_upload_parts
from .config import build_settings
from .errors import DuploError, InputError
from .selection import SelectionWarning, run_indexed
from .sinks import ConsoleSink, FileSink


logger = logging.getLogger("duplo")


# --- Global Configuration ---
custom_theme = Theme({
    "info": "bright_cyan",
    "warning": "bright_yellow",
    "danger": "bright_red",
    "success": "bright_green",
    "primary": "bright_blue",
    "secondary": "bright_magenta",
    "accent": "bright_white",
    "subtle": "dim white"
})
console = Console(theme=custom_theme)


def setup_logging(verbosity: int = 0) -> None:
    """Route the duplo loggers to stderr.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    # Clear existing handlers
    logger.handlers = []
    logger.setLevel(level)
    logger.propagate = False

    handler = RichHandler(
        console=Console(theme=custom_theme, stderr=True),
        show_path=verbosity >= 2,
        markup=False,
    )
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.debug(f"Logging initialized (verbosity={verbosity})")


def make_progress() -> Progress:
    """Progress bar for a single transfer."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(complete_style="bright_green", finished_style="bright_green"),
        "•",
        DownloadColumn(binary_units=True),
        "•",
        TransferSpeedColumn(),
        "•",
        TimeRemainingColumn(),
        console=console,
        transient=True,
    )


# --- Main CLI Application ---
class DuploCLI:
    """Runs one command against a storage."""
    def __init__(self, client: StorageClient, view: bool = False,
                 download_dir: Optional[Path] = None):
        self.client = client
        self.view = view
        self.download_dir = download_dir or Path(".")


    def warn_selection(self, warning: SelectionWarning) -> None:
        console.print(f"[warning]⚠  {escape(warning.message)}[/]")


    def list_files(self, arguments: Sequence[str]) -> None:
        """Fetches and displays the numbered file list."""
        with Status("[info]Fetching file list...", console=console, spinner="dots12"):
            files = self.client.list_files()

        if not files:
            console.print("[warning]⚠  No files in this storage.[/]")
            return

        for number, f in enumerate(files, start=1):
            console.print(f"[info]{number}[/] [subtle]=>[/] [primary]{escape(f.name)}[/]")
        console.print(f"[accent]Total files:[/] [secondary]{len(files)}[/]")


    def _download_one(self, file_name: str) -> None:
        """Download a single file into the console or a new local file."""
        if self.view:
            sink = ConsoleSink()
            try:
                self.client.download(file_name, sink)
            finally:
                sink.close()
            return

        length = self.client.content_length(file_name)
        if length is None:
            console.print("[warning]⚠  Unable to determine content length[/]")

        sink = FileSink(file_name, self.download_dir)
        try:
            with make_progress() as progress:
                task_id = progress.add_task(f"[info]⏳ {escape(file_name)}[/]", total=length)
                self.client.download(
                    file_name, sink,
                    on_chunk=lambda size: progress.update(task_id, advance=size),
                )
        finally:
            sink.close()
        console.print(f"[success]✓ Downloaded:[/] {escape(str(sink.path))}")


    def download(self, tokens: Sequence[str]) -> None:
        run_indexed(tokens, self.client.list_files, self._download_one, self.warn_selection)


    def _delete_one(self, file_name: str) -> None:
        self.client.delete(file_name)
        console.print(f"[success]✓ Deleted:[/] {escape(file_name)}")


    def delete(self, tokens: Sequence[str]) -> None:
        run_indexed(tokens, self.client.list_files, self._delete_one, self.warn_selection)


    def upload(self, paths: Sequence[str]) -> None:
        """Uploads local files in a single request."""
        if not paths:
            raise InputError("No files specified")
        parts, total = build_upload_parts(paths)
        message = f"[info]Uploading {len(parts)} file(s), {filesize.decimal(total)}...[/]"
        with Status(message, console=console, spinner="dots12"):
            count = self.client.upload_parts(parts)
        console.print(f"[success]✓ Uploaded {count} file(s)[/]")


    def share_text(self, arguments: Sequence[str]) -> None:
        """Publishes a titled text note."""
        if len(arguments) < 2:
            raise InputError("No <title> or <body> parameters provided")
        title = arguments[0].replace("/", "")
        self.client.share_text(title, arguments[1])
        console.print("[success]✓ Text uploaded[/]")


    def run_command(self, command: str, arguments: Sequence[str]) -> None:
        cmd_map = {
            "list": self.list_files,
            "get": self.download,
            "push": self.upload,
            "del": self.delete,
            "text": self.share_text,
        }
        if command not in cmd_map:
            raise InputError(f"Unknown command {command}")
        cmd_map[command](arguments)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="duplo", description="Client for a duplo file-storage server"
    )
    parser.add_argument("-H", "--host", help="Server address (default: http://duplo.viberlab.com)")
    parser.add_argument("-s", "--storage", help="Storage name (default: common)")
    parser.add_argument(
        "-p", "--permanent", action="store_true", help="Use the permanent storage"
    )
    parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -v for INFO, -vv for DEBUG)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("list", help="List files in the current storage")

    get_parser = subparsers.add_parser(
        "get", help="Download files by number (see list), e.g. duplo get 1 2 3"
    )
    get_parser.add_argument("arguments", nargs="*", metavar="index")
    get_parser.add_argument(
        "-V", "--view", action="store_true", help="Print file contents instead of saving"
    )

    push_parser = subparsers.add_parser("push", help="Upload files to the current storage")
    push_parser.add_argument("arguments", nargs="*", metavar="path")

    del_parser = subparsers.add_parser(
        "del", help="Delete files by number (see list), e.g. duplo del 1 2"
    )
    del_parser.add_argument("arguments", nargs="*", metavar="index")

    text_parser = subparsers.add_parser("text", help="Upload a text message")
    text_parser.add_argument("arguments", nargs="*", metavar="title body")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits on --help, --version and usage errors
        return e.code if isinstance(e.code, int) else 1

    setup_logging(verbosity=args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = build_settings(
            host=args.host,
            storage=args.storage,
            permanent=args.permanent,
            config_path=args.config,
        )
        logger.info(f"Using {settings.host} storage {settings.storage!r}"
                    f"{' (permanent)' if settings.permanent else ''}")
        endpoints = Endpoints(settings.host, settings.storage, settings.permanent)
        client = StorageClient(endpoints, timeout=settings.timeout)
        cli = DuploCLI(client, view=getattr(args, "view", False))
        cli.run_command(args.command, getattr(args, "arguments", []))
    except DuploError as e:
        console.print(f"[danger]✗ Error:[/] {escape(str(e))}")
        logger.debug(f"{args.command} failed", exc_info=True)
        return 1
    except KeyboardInterrupt:
        console.print("\n[warning]⚠  Operation cancelled.[/warning]")
        return 130

    console.print("[subtle]Done...[/]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
