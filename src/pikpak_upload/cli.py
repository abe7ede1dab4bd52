import sys
import httpx
from pikpak_upload.config import get_settings
from pikpak_upload.errors import UploadError
from pikpak_upload.logging_config import setup_logging
from pikpak_upload.main import Uploader
from pikpak_upload.parsing import parse_arguments
from pikpak_upload.utils import CredentialManager, SpeedMonitor


async def cli(argv=None):
    """Main entry point for the upload tool."""
    # Parse command line arguments
    args = parse_arguments(argv)
    setup_logging(args.debug)

    # Collect missing credentials
    settings = CredentialManager(get_settings()).collect_credentials().get_settings()
    if args.concurrency is not None:
        settings.CONCURRENCY = args.concurrency
    if args.chunk_size_bytes is not None:
        settings.MIN_CHUNK_SIZE = args.chunk_size_bytes
    if args.max_attempts is not None:
        settings.MAX_ATTEMPTS = args.max_attempts

    try:
        await upload(args, settings)
    except (UploadError, httpx.HTTPError, OSError) as e:
        print(f"\nError: {e}")
        sys.exit(1)


async def upload(args, settings):
    """Upload the file named on the command line."""
    print(f"Preparing to upload {args.path}")

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.TIMEOUT), follow_redirects=True
    ) as client:
        uploader = Uploader.from_settings(
            client, settings, display_progress=not args.no_progress
        )
        file_id = await uploader.upload_file(args.path, args.parent_id)

    if uploader.last_summary is not None:
        SpeedMonitor.display_final_stats(uploader.last_summary)
    else:
        print("\nFile already present on the drive, nothing transferred.")

    print(f"File id: {file_id}")
    return file_id
