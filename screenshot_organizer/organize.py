"""Steam Screenshot Organizer - Sort screenshots into per-game folders.

Looks up each screenshot's Steam app id in the Steam app list (cached
locally as app.json) and moves or copies the screenshot into a folder named
after the game. Run it from the folder that holds the screenshots.

Usage:
    steam-screenshot-organizer [options]

Options:
    --config PATH       Path to configuration file (default: .ssorgrc.json)
    --mode {1,2}        Folder type (default: ask interactively)
    --cache-file PATH   App list cache file (default: app.json)
    --catalog-url URL   App list endpoint (default: Steam GetAppList v2)
    --pack-dir DIR      Output folder for mode 2 (default: screenPacks)
    --workers N         Worker threads (default: CPU count)
    --timeout SECONDS   Give up waiting for workers after this long (default: 600)
    --refresh-catalog   Download the app list again even if cached
    --dry-run           Preview changes without moving files
    --verbose           Show detailed output
    --quiet             Suppress all output except errors
    --no-pause          Do not wait for Enter before exiting
    --help              Show this help message
    --version           Show version number

Folder types:
    1: Screenshots are directly in the current directory
       (<appid>_<timestamp>_<sequence>.png). They are moved into
       ./<Game Name>/.
    2: Screenshots are in ./<appid>/screenshots/. They are copied into
       ./screenPacks/<Game Name>/ and the originals are kept.

Configuration:
    Create a .ssorgrc.json (or .ssorgrc.yaml) file in the screenshot folder:

    {
        "mode": 1,
        "cache_file": "app.json",
        "pack_dir": "screenPacks",
        "max_workers": 8,
        "wait_timeout": 600,
        "connect_timeout": 15,
        "request_timeout": 60,
        "pause_on_exit": true
    }

Environment Variables:
    SSORG_MODE          Folder type (1 or 2)
    SSORG_CACHE_FILE    App list cache file
    SSORG_CATALOG_URL   App list endpoint
    SSORG_PACK_DIR      Output folder for mode 2
    SSORG_MAX_WORKERS   Worker threads
    SSORG_WAIT_TIMEOUT  Seconds to wait for workers
    SSORG_DRY_RUN       Set to 'true' for dry run
    SSORG_VERBOSE       Set to 'true' for verbose output
    SSORG_NO_PAUSE      Set to 'true' to skip the exit prompt
"""

from __future__ import annotations

import argparse
import errno
import json
import os
import shutil
import stat
import sys
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import TypedDict

import yaml

from screenshot_organizer import __version__
from screenshot_organizer.catalog import (
    DEFAULT_CACHE_FILE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    STEAM_APP_LIST_URL,
    Catalog,
    CatalogUnavailable,
    load_catalog,
)
from screenshot_organizer.console import Colors, Logger
from screenshot_organizer.naming import is_screenshot_name, is_valid_app_id

# Default configuration file names to search for
CONFIG_FILE_NAMES = [
    ".ssorgrc.json",
    ".ssorgrc.yaml",
    ".ssorgrc.yml",
    "ssorg.config.json",
    "ssorg.config.yaml",
]

# Folder that holds each game's screenshots in mode 2
SCREENSHOTS_SUBDIR = "screenshots"

DEFAULT_PACK_DIR = "screenPacks"

# Upper bound on how long the run waits for outstanding workers
DEFAULT_WAIT_TIMEOUT = 600.0


class FolderMode(Enum):
    """Where the screenshots live."""

    LOOSE = 1
    GAME_FOLDERS = 2


class TransferMode(Enum):
    """Whether the source is removed after it is placed."""

    MOVE = "move"
    COPY = "copy"


class MoveFailed(Exception):
    """A screenshot could not be placed in its target folder."""

    def __init__(self, source: Path, target_dir: Path, cause: BaseException | str) -> None:
        self.source = source
        self.target_dir = target_dir
        self.cause = cause
        super().__init__(f"Failed to place file: {source} -> {target_dir}: {cause}")


class ConfigDict(TypedDict, total=False):
    """Configuration dictionary type."""

    mode: int
    cache_file: str
    catalog_url: str
    connect_timeout: float
    request_timeout: float
    progress_interval: float
    pack_dir: str
    max_workers: int
    wait_timeout: float
    pause_on_exit: bool


@dataclass
class OrganizerConfig:
    """Configuration for an organize run."""

    root_dir: Path = field(default_factory=Path.cwd)
    mode: FolderMode | None = None
    cache_file: str = DEFAULT_CACHE_FILE
    catalog_url: str = STEAM_APP_LIST_URL
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    progress_interval: float = DEFAULT_PROGRESS_INTERVAL
    pack_dir: str = DEFAULT_PACK_DIR
    max_workers: int | None = None
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    refresh_catalog: bool = False
    dry_run: bool = False
    pause_on_exit: bool = True
    verbosity: int = 1  # 0=quiet, 1=normal, 2=verbose

    @classmethod
    def from_dict(cls, data: ConfigDict, root_dir: Path | None = None) -> OrganizerConfig:
        """Create config from dictionary."""
        config = cls()
        if root_dir:
            config.root_dir = root_dir

        if data.get("mode") is not None:
            config.mode = FolderMode(int(data["mode"]))
        if data.get("cache_file") is not None:
            config.cache_file = data["cache_file"]
        if data.get("catalog_url") is not None:
            config.catalog_url = data["catalog_url"]
        if data.get("connect_timeout") is not None:
            config.connect_timeout = float(data["connect_timeout"])
        if data.get("request_timeout") is not None:
            config.request_timeout = float(data["request_timeout"])
        if data.get("progress_interval") is not None:
            config.progress_interval = float(data["progress_interval"])
        if data.get("pack_dir") is not None:
            config.pack_dir = data["pack_dir"]
        if data.get("max_workers") is not None:
            config.max_workers = int(data["max_workers"])
        if data.get("wait_timeout") is not None:
            config.wait_timeout = float(data["wait_timeout"])
        if data.get("pause_on_exit") is not None:
            config.pause_on_exit = bool(data["pause_on_exit"])

        return config

    @property
    def cache_path(self) -> Path:
        return self.root_dir / self.cache_file

    @property
    def worker_count(self) -> int:
        if self.max_workers and self.max_workers > 0:
            return self.max_workers
        return os.cpu_count() or 1


@dataclass
class UnitResult:
    """Outcome of one unit of work (one file, or one game folder)."""

    label: str
    placed: int = 0
    failed: int = 0


@dataclass
class OrganizeResult:
    """Summary of an organize run, used for the closing summary line."""

    mode: FolderMode
    candidates: int = 0
    placed: int = 0
    failed: int = 0
    timed_out: bool = False
    pending: int = 0
    dry_run: bool = False


def load_config_file(config_path: Path | None = None) -> ConfigDict:
    """Load configuration from file."""
    root_dir = Path.cwd()

    if config_path:
        paths = [root_dir / config_path]
        if not paths[0].exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        paths = [root_dir / name for name in CONFIG_FILE_NAMES]

    for path in paths:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                if path.suffix in (".yaml", ".yml"):
                    data: ConfigDict = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"Config file {path.name} must contain a mapping")
            return data

    return {}


def load_env_config() -> ConfigDict:
    """Load configuration from environment variables."""
    config: ConfigDict = {}

    if os.environ.get("SSORG_MODE"):
        config["mode"] = int(os.environ["SSORG_MODE"])
    if os.environ.get("SSORG_CACHE_FILE"):
        config["cache_file"] = os.environ["SSORG_CACHE_FILE"]
    if os.environ.get("SSORG_CATALOG_URL"):
        config["catalog_url"] = os.environ["SSORG_CATALOG_URL"]
    if os.environ.get("SSORG_PACK_DIR"):
        config["pack_dir"] = os.environ["SSORG_PACK_DIR"]
    if os.environ.get("SSORG_MAX_WORKERS"):
        config["max_workers"] = int(os.environ["SSORG_MAX_WORKERS"])
    if os.environ.get("SSORG_WAIT_TIMEOUT"):
        config["wait_timeout"] = float(os.environ["SSORG_WAIT_TIMEOUT"])
    if os.environ.get("SSORG_NO_PAUSE") == "true":
        config["pause_on_exit"] = False

    return config


def is_hidden(path: Path) -> bool:
    """Dot-prefixed on POSIX, or carrying the hidden attribute on Windows."""
    if path.name.startswith("."):
        return True
    attributes = getattr(path.stat(), "st_file_attributes", 0)
    return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)


def collect_loose_screenshots(root_dir: Path) -> list[Path]:
    """Screenshot files lying directly in ``root_dir`` (mode 1)."""
    return sorted(
        entry
        for entry in root_dir.iterdir()
        if entry.is_file() and is_screenshot_name(entry.name)
    )


def collect_game_dirs(root_dir: Path) -> list[Path]:
    """Visible folders named by an app id (mode 2)."""
    return sorted(
        entry
        for entry in root_dir.iterdir()
        if entry.is_dir() and is_valid_app_id(entry.name) and not is_hidden(entry)
    )


def _move(source: Path, destination: Path) -> None:
    try:
        os.replace(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        # Different filesystem, rename is not possible
        shutil.copy2(source, destination)
        source.unlink()


def place_file(
    source: Path,
    target_dir: Path,
    file_name: str,
    transfer: TransferMode,
    logger: Logger,
    dry_run: bool = False,
) -> Path:
    """Move or copy ``source`` to ``target_dir/file_name``.

    The target folder is created if missing (concurrent creation is fine)
    and an existing file at the destination is overwritten.

    Raises:
        MoveFailed: if the folder cannot be created or the transfer fails.
    """
    destination = target_dir / file_name
    verb = "Moved" if transfer is TransferMode.MOVE else "Copied"

    if dry_run:
        logger.info(f"Would {transfer.value}: {file_name} → {target_dir.name}")
        return destination

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise MoveFailed(source, target_dir, e) from e
    if not target_dir.is_dir():
        raise MoveFailed(source, target_dir, "target is not a directory")

    try:
        if transfer is TransferMode.MOVE:
            _move(source, destination)
        else:
            shutil.copy2(source, destination)
    except OSError as e:
        raise MoveFailed(source, target_dir, e) from e

    logger.success(f"{verb}: {file_name} → {target_dir.name}")
    return destination


def organize_loose_file(
    source: Path,
    catalog: Catalog,
    root_dir: Path,
    logger: Logger,
    dry_run: bool = False,
) -> UnitResult:
    """Move one loose screenshot into its game folder (mode 1)."""
    result = UnitResult(label=str(source))
    file_name = source.name
    app_id = file_name.split("_", 1)[0]

    if not is_valid_app_id(app_id):
        logger.error(f"Skipped file with invalid appId: {file_name}")
        result.failed += 1
        return result

    target_dir = root_dir / catalog.resolve(app_id)
    place_file(source, target_dir, file_name, TransferMode.MOVE, logger, dry_run)
    result.placed += 1
    return result


def organize_game_dir(
    game_dir: Path,
    catalog: Catalog,
    pack_dir: Path,
    logger: Logger,
    dry_run: bool = False,
) -> UnitResult:
    """Copy one game folder's screenshots into the pack folder (mode 2).

    Files are handled one after another; a failed file is reported and the
    rest of the folder is still copied.
    """
    result = UnitResult(label=str(game_dir))
    screenshots_dir = game_dir / SCREENSHOTS_SUBDIR
    if not screenshots_dir.is_dir():
        logger.skip(f"Skipping: {game_dir.name} (no {SCREENSHOTS_SUBDIR} folder)")
        return result

    target_dir = pack_dir / catalog.resolve(game_dir.name)
    for screenshot in sorted(screenshots_dir.iterdir()):
        if not screenshot.is_file():
            continue
        try:
            place_file(
                screenshot, target_dir, screenshot.name, TransferMode.COPY, logger, dry_run
            )
            result.placed += 1
        except MoveFailed as e:
            logger.error(str(e))
            result.failed += 1

    return result


def _run_unit(unit: Callable[[], UnitResult], label: str, logger: Logger) -> UnitResult:
    """Run a unit of work, reporting its failure instead of raising it."""
    try:
        return unit()
    except Exception as e:
        logger.error(f"Error processing {label}: {e}")
        return UnitResult(label=label, failed=1)


def dispatch(
    units: list[tuple[str, Callable[[], UnitResult]]],
    logger: Logger,
    max_workers: int,
    timeout: float | None = DEFAULT_WAIT_TIMEOUT,
) -> tuple[list[UnitResult], int]:
    """Run labelled units of work on a thread pool.

    Waits until every unit is done or ``timeout`` seconds pass. Units still
    running or still queued at that point are not cancelled; they run to
    completion in the background and their outcome is not reported.

    Returns:
        The results of the finished units and the number left unfinished.
    """
    if not units:
        return [], 0

    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = [executor.submit(_run_unit, unit, label, logger) for label, unit in units]
        done, not_done = wait(futures, timeout=timeout)
    finally:
        executor.shutdown(wait=False)

    results = [f.result() for f in done]
    if not_done:
        logger.warn(
            f"Some file processing timed out ({len(not_done)} task(s) still running in the background)"
        )
    return results, len(not_done)


def organize(config: OrganizerConfig, catalog: Catalog, mode: FolderMode) -> OrganizeResult:
    """Organize the screenshots under ``config.root_dir``."""
    logger = Logger(config.verbosity, config.dry_run)
    result = OrganizeResult(mode=mode, dry_run=config.dry_run)
    root_dir = config.root_dir

    units: list[tuple[str, Callable[[], UnitResult]]] = []
    if mode is FolderMode.LOOSE:
        logger.header(f"Organizing screenshots in {root_dir}")
        for source in collect_loose_screenshots(root_dir):
            units.append(
                (
                    str(source),
                    partial(
                        organize_loose_file, source, catalog, root_dir, logger, config.dry_run
                    ),
                )
            )
    else:
        pack_dir = root_dir / config.pack_dir
        logger.header(f"Collecting game screenshots into {pack_dir}")
        game_dirs = collect_game_dirs(root_dir)
        if game_dirs and not config.dry_run:
            pack_dir.mkdir(parents=True, exist_ok=True)
        for game_dir in game_dirs:
            units.append(
                (
                    str(game_dir),
                    partial(
                        organize_game_dir, game_dir, catalog, pack_dir, logger, config.dry_run
                    ),
                )
            )

    result.candidates = len(units)
    if not units:
        logger.info("No screenshots to organize")
        return result

    logger.verbose(f"Found {len(units)} item(s) to process with {config.worker_count} worker(s)")
    unit_results, pending = dispatch(units, logger, config.worker_count, config.wait_timeout)

    result.placed = sum(r.placed for r in unit_results)
    result.failed = sum(r.failed for r in unit_results)
    result.pending = pending
    result.timed_out = pending > 0

    verb = "moved" if mode is FolderMode.LOOSE else "copied"
    summary_parts = [f"{result.placed} {verb}"]
    if result.failed:
        summary_parts.append(f"{result.failed} failed")
    if result.pending:
        summary_parts.append(f"{result.pending} unfinished")
    logger.info(f"\n{Colors.BOLD}Summary:{Colors.RESET} {', '.join(summary_parts)}")

    return result


def prompt_folder_mode(input_func: Callable[[str], str] = input) -> FolderMode:
    """Ask which folder layout the screenshots use until a valid answer is given.

    Raises:
        EOFError: if standard input is closed before a valid answer.
    """
    while True:
        print("\nPlease select the screenshot folder type:")
        print(
            "1: Screenshots are directly in the current directory "
            "(format: appid_timestamp_sequence.png)"
        )
        print(f"2: Screenshots are in the '{SCREENSHOTS_SUBDIR}' subdirectory of each game")
        answer = input_func("Enter your choice (1 or 2): ").strip()
        try:
            choice = int(answer)
        except ValueError:
            print("Invalid input. Please enter a number: 1 or 2")
            continue
        if choice in (1, 2):
            return FolderMode(choice)
        print("Invalid input. Please enter 1 or 2")


def wait_for_key_press(input_func: Callable[[str], str] = input) -> None:
    """Keep the console window open until Enter is pressed."""
    try:
        input_func("\nPress Enter to exit...")
    except (EOFError, KeyboardInterrupt):
        print()


def run(config: OrganizerConfig, input_func: Callable[[str], str] = input) -> int:
    """Load the catalog, pick the folder type and organize."""
    logger = Logger(config.verbosity, config.dry_run)

    try:
        catalog = load_catalog(
            config.cache_path,
            logger,
            url=config.catalog_url,
            connect_timeout=config.connect_timeout,
            request_timeout=config.request_timeout,
            progress_interval=config.progress_interval,
            refresh=config.refresh_catalog,
        )
    except CatalogUnavailable as e:
        logger.error(f"Error: {e}")
        if e.__cause__ is not None:
            logger.error(f"Details: {e.__cause__}")
        if config.cache_path.exists():
            logger.info(f"Consider deleting {config.cache_file} and trying again.")
        return 1

    mode = config.mode or prompt_folder_mode(input_func)
    organize(config, catalog, mode)
    logger.info("\nOrganization completed!")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="steam-screenshot-organizer",
        description="Sort Steam screenshots into per-game folders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  steam-screenshot-organizer                   # Ask for the folder type
  steam-screenshot-organizer --mode 1          # Loose screenshots in this folder
  steam-screenshot-organizer --mode 2          # <appid>/screenshots folders
  steam-screenshot-organizer --dry-run         # Preview changes
  steam-screenshot-organizer --refresh-catalog # Download the app list again

Configuration Files:
  .ssorgrc.json, .ssorgrc.yaml, .ssorgrc.yml, ssorg.config.json, ssorg.config.yaml
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file (default: .ssorgrc.json)",
    )
    parser.add_argument(
        "--mode",
        type=int,
        choices=[1, 2],
        help="Folder type: 1 = loose screenshots, 2 = <appid>/screenshots folders",
    )
    parser.add_argument(
        "--cache-file",
        dest="cache_file",
        help=f"App list cache file (default: {DEFAULT_CACHE_FILE})",
    )
    parser.add_argument(
        "--catalog-url",
        dest="catalog_url",
        help="App list endpoint (default: Steam GetAppList v2)",
    )
    parser.add_argument(
        "--pack-dir",
        dest="pack_dir",
        help=f"Output folder for mode 2 (default: {DEFAULT_PACK_DIR})",
    )
    parser.add_argument(
        "--workers",
        dest="max_workers",
        type=int,
        help="Number of worker threads (default: CPU count)",
    )
    parser.add_argument(
        "--timeout",
        dest="wait_timeout",
        type=float,
        help=f"Seconds to wait for workers (default: {DEFAULT_WAIT_TIMEOUT:g})",
    )
    parser.add_argument(
        "--refresh-catalog",
        dest="refresh_catalog",
        action="store_true",
        help="Download the app list again even if it is cached",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without moving files",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show detailed output",
    )
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all output except errors",
    )
    parser.add_argument(
        "--no-pause",
        dest="no_pause",
        action="store_true",
        help="Do not wait for Enter before exiting",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> OrganizerConfig:
    """Merge defaults, config file, environment and CLI (highest wins)."""
    file_config = load_config_file(args.config)
    env_config = load_env_config()
    merged_config: ConfigDict = {**file_config, **env_config}

    config = OrganizerConfig.from_dict(merged_config, Path.cwd())

    if args.mode is not None:
        config.mode = FolderMode(args.mode)
    if args.cache_file:
        config.cache_file = args.cache_file
    if args.catalog_url:
        config.catalog_url = args.catalog_url
    if args.pack_dir:
        config.pack_dir = args.pack_dir
    if args.max_workers is not None:
        config.max_workers = args.max_workers
    if args.wait_timeout is not None:
        config.wait_timeout = args.wait_timeout
    if args.refresh_catalog:
        config.refresh_catalog = True
    if args.dry_run or os.environ.get("SSORG_DRY_RUN") == "true":
        config.dry_run = True
    if args.verbose or os.environ.get("SSORG_VERBOSE") == "true":
        config.verbosity = 2
    if args.quiet:
        config.verbosity = 0
    if args.no_pause:
        config.pause_on_exit = False

    return config


def main(argv: list[str] | None = None, input_func: Callable[[str], str] = input) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Disable colors if not TTY
    if not sys.stdout.isatty():
        Colors.disable()

    pause = not args.no_pause and os.environ.get("SSORG_NO_PAUSE") != "true"

    try:
        try:
            config = build_config(args)
        except FileNotFoundError as e:
            print(f"{Colors.RED}Error:{Colors.RESET} {e}", file=sys.stderr)
            return 1
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            print(f"{Colors.RED}Error:{Colors.RESET} Invalid config file: {e}", file=sys.stderr)
            return 1
        except (ValueError, TypeError) as e:
            print(f"{Colors.RED}Error:{Colors.RESET} Invalid configuration: {e}", file=sys.stderr)
            return 1

        pause = config.pause_on_exit
        try:
            return run(config, input_func)
        except (KeyboardInterrupt, EOFError):
            print("\nInterrupted", file=sys.stderr)
            return 130
        except Exception as e:
            print(
                f"{Colors.RED}Fatal error:{Colors.RESET} An error occurred during program execution: {e}",
                file=sys.stderr,
            )
            return 1
    finally:
        if pause:
            wait_for_key_press(input_func)


if __name__ == "__main__":
    sys.exit(main())
