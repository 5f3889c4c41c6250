"""CLI entry point."""

import argparse
import os
import sys
from typing import Optional

from common.logging_config import setup_logging
from cli.config import Config
from cli.constants import GREEN, RESET
from cli.upload_client import ResumableUploadClient, UploadError


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the resumable-upload command."""
    parser = argparse.ArgumentParser(
        prog='resumable-upload',
        description='Upload a file in resumable chunks',
    )
    parser.add_argument('file', help='Local file to upload')
    parser.add_argument('--chunk-size', type=int, default=None, help='Bytes per chunk')
    parser.add_argument('--identifier', default=None, help='Upload identifier (default: <size>-<name>)')
    parser.add_argument('--name', default=None, help='Name to upload the file under')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser


def main(argv: Optional[list] = None) -> int:
    """Entry point for CLI."""
    args = build_parser().parse_args(argv)
    log_level = 'DEBUG' if args.debug else os.getenv('LOG_LEVEL', 'INFO')

    logger = setup_logging('cli', log_level=log_level)
    if args.debug:
        logger.info("Debug logging enabled")

    if args.chunk_size is not None and args.chunk_size <= 0:
        print("Error: --chunk-size must be positive", file=sys.stderr)
        return 2

    client = ResumableUploadClient(Config(Config.default_path()))
    try:
        summary = client.upload_file(
            args.file,
            identifier=args.identifier,
            name=args.name,
            chunk_size=args.chunk_size,
            show_progress=True,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (UploadError, ConnectionError) as e:
        logger.error(f"Upload failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()

    if summary['complete']:
        print(f"{GREEN}✓{RESET} Uploaded to {summary['filepath']}")
        return 0

    print(
        f"Sent {summary['chunks_sent']} chunks, skipped {summary['chunks_skipped']}; "
        f"server did not report completion"
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
