import argparse
import asyncio
import logging
import mimetypes
import sys
from importlib.metadata import version
from pathlib import Path
from typing import Optional

from watermark_kit.session import Status, WatermarkSession
from watermark_kit.watermark.composite import DEFAULT_FILENAME
from watermark_kit.watermark.style import STYLES, get_style


def get_version() -> str:
    try:
        return version("watermark-kit")
    except Exception:
        return "unknown"


def setup_logging(log_file: Optional[str], quiet: bool) -> None:
    """
    Configure console and optional file logging for the package.

    The console handler emits INFO-level messages (WARNING with ``--quiet``)
    using a minimal format. The file handler, when enabled, emits
    DEBUG-level messages with full timestamps.
    """
    logger = logging.getLogger("watermark_kit")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING if quiet else logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)


def get_arg() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Burn a centered text watermark into an image.",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=get_version(),
        help="Show program's version number and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        metavar="<command>",
    )

    apply_parser = subparsers.add_parser(
        "apply",
        help="Apply a text watermark to a single image and export it as PNG",
    )
    apply_parser.add_argument(
        "-i", "--input",
        required=True,
        help="Input image file",
    )
    apply_parser.add_argument(
        "-t", "--text",
        default=WatermarkSession.DEFAULT_TEXT,
        help=f"Watermark text (default: '{WatermarkSession.DEFAULT_TEXT}')",
    )
    apply_parser.add_argument(
        "-o", "--output",
        default=DEFAULT_FILENAME,
        help=f"Output PNG path (default: {DEFAULT_FILENAME})",
    )
    apply_parser.add_argument(
        "-s", "--style",
        choices=sorted(STYLES),
        default="default",
        help="Watermark style preset (default: default)",
    )
    apply_parser.add_argument(
        "--data-url",
        action="store_true",
        help="Print the result as a data URL instead of writing a file",
    )
    apply_parser.add_argument(
        "--log-file",
        help="Path to log file",
    )
    apply_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )

    return parser


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def run_apply(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.is_file():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    session = WatermarkSession(text=args.text, style=get_style(args.style))
    if not session.load(input_path.read_bytes(), guess_mime_type(input_path)):
        raise ValueError(f"{session.error} ({input_path.name})")

    result = asyncio.run(session.apply())
    if session.status is not Status.SUCCESS or result is None:
        raise RuntimeError(session.error or "Watermarking failed.")

    if args.data_url:
        print(result.to_data_url())
        return

    dest_path = result.save(args.output)
    logging.getLogger(__name__).info(
        f"✓ {input_path.name} [{args.text}] → {dest_path}"
    )


def main() -> None:
    parser = get_arg()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help(sys.stderr)
        sys.exit(1)

    setup_logging(args.log_file, args.quiet)

    handlers = {
        "apply": run_apply,
    }

    try:
        handlers[args.command](args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
