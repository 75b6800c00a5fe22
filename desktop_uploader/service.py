"""
Headless runner for Desktop Uploader.

Runs one uploader in the foreground until SIGINT/SIGTERM:

    python -m desktop_uploader start ~/Outbox --dest /mnt/share
    python -m desktop_uploader start ~/Outbox --extensions mp3,wav --throttle 262144

Without ``--dest`` settled files are only logged.
"""

import argparse
import asyncio
import logging
import logging.handlers
import signal
import sys

from desktop_uploader import __app_name__, __version__
from desktop_uploader.copier import FileCopier
from desktop_uploader.errors import DesktopUploaderError
from desktop_uploader.platform_utils import IS_WINDOWS, get_config_dir, get_log_path
from desktop_uploader.uploader import DesktopUploader

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="desktop-uploader",
        description="Watch folders and hand settled files to a transfer step.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    start = sub.add_parser("start", help="Run in the foreground (Ctrl-C to stop)")
    start.add_argument("paths", nargs="*", help="Roots to watch on first start")
    start.add_argument("--dest", help="Copy settled files into this folder")
    start.add_argument("--config-path", help="Directory of the state file")
    start.add_argument("--name", help="State file stem (default: desktop-uploader)")
    start.add_argument("--concurrency", type=int)
    start.add_argument("--retries", type=int)
    start.add_argument("--throttle", type=int, help="Shared upload budget in bytes/sec")
    start.add_argument("--extensions", help="Comma-separated allowlist, e.g. mp3,wav")
    start.add_argument("--modify-interval", type=int, help="Settle poll period (ms)")
    start.add_argument("--save-interval", type=int, help="State save debounce (ms)")
    start.add_argument("--log-level", default="INFO")
    start.add_argument("--log-file", help="Rotating log file (default: config dir)")
    return parser


def options_from_args(args: argparse.Namespace) -> dict:
    """Translate parsed CLI arguments into uploader options."""
    options = {
        "paths": args.paths,
        "config_path": args.config_path or str(get_config_dir()),
        "name": args.name,
        "concurrency": args.concurrency,
        "retries": args.retries,
        "throttle": args.throttle,
        "modify_interval": args.modify_interval,
        "save_interval": args.save_interval,
    }
    if args.extensions:
        options["extensions"] = args.extensions.split(",")
    return {k: v for k, v in options.items() if v is not None}


def setup_logging(level_name: str = "INFO", log_file: str | None = None) -> None:
    """Configure rotating file log and stderr handler."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    fh = logging.handlers.RotatingFileHandler(
        log_file or str(get_log_path()),
        maxBytes=10 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


def _log_processed(task, success: bool) -> None:
    if success:
        logger.info("Processed %s (%d bytes)", task.path, task.size)
    else:
        logger.error("Giving up on %s after %d attempt(s)", task.path, task.attempts)


def _log_error(exc, path) -> None:
    logger.error("Error on %s: %s", path, exc)


async def run_foreground(options: dict, dest: str | None = None) -> None:
    """Run an uploader until SIGINT/SIGTERM, then flush its state."""
    transfer = FileCopier(dest) if dest else None
    uploader = DesktopUploader(options, transfer=transfer)
    uploader.on("processed", _log_processed)
    uploader.on("error", _log_error)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    if not IS_WINDOWS:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

    uploader.resume()
    print(f"{__app_name__} running (press Ctrl-C to stop)…")
    try:
        await stop.wait()
    finally:
        await uploader.close()
    print(f"{__app_name__} stopped.")


def main(argv: list[str] | None = None) -> int:
    """Entry point for the headless runner."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "start":
        parser.print_help()
        return 2

    setup_logging(args.log_level, args.log_file)
    logger.info("%s %s starting.", __app_name__, __version__)
    try:
        asyncio.run(run_foreground(options_from_args(args), dest=args.dest))
    except KeyboardInterrupt:
        pass
    except (DesktopUploaderError, FileNotFoundError) as exc:
        logger.error("Cannot start: %s", exc)
        return 1
    return 0
