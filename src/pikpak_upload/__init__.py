"""PikPak multipart uploader."""

import asyncio
import sys

from pikpak_upload.cli import cli
from pikpak_upload.main import Uploader, upload_file

__all__ = ["Uploader", "main", "upload_file"]


def main():
    try:
        asyncio.run(cli())
    except KeyboardInterrupt:
        print("\nUpload interrupted by user.")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)
