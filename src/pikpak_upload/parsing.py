import argparse
from pikpak_upload.constants import DEFAULT_CONCURRENCY, DEFAULT_MAX_ATTEMPTS
from pikpak_upload.utils import parse_size


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Upload a local file to PikPak using parallel multipart transfers."
    )

    parser.add_argument("path", help="Local file to upload")

    parser.add_argument(
        "--parent-id",
        help="Drive folder id to upload into (default: the drive's upload folder)",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        help=f"Number of parts to upload in parallel. Default: {DEFAULT_CONCURRENCY}",
    )

    parser.add_argument(
        "--chunk-size",
        type=str,
        help="Minimum part size (e.g., '256KB', '8MB'). Accepts suffixes KB, MB, GB.",
    )

    parser.add_argument(
        "--max-attempts",
        type=int,
        help=f"Attempts per part before the upload is aborted. Default: {DEFAULT_MAX_ATTEMPTS}",
    )

    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not display transfer progress",
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    args = parser.parse_args(argv)

    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")
    if args.max_attempts is not None and args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")

    # Convert chunk size to bytes
    args.chunk_size_bytes = None
    if args.chunk_size is not None:
        try:
            args.chunk_size_bytes = parse_size(args.chunk_size)
        except ValueError as e:
            parser.error(str(e))
        if args.chunk_size_bytes < 1:
            parser.error("--chunk-size must be positive")

    return args
