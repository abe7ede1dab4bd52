#!/usr/bin/env python3
"""
PikPak uploader

Uploads a local file to PikPak: registers the file with the drive, skips the
transfer when the drive already holds the content, otherwise sends the file
as a signed, parallel multipart upload to the object store.
"""

import asyncio
import logging
import os
from pathlib import Path

import httpx

from pikpak_upload.captcha import CaptchaClient, load_salt_table
from pikpak_upload.config import Settings
from pikpak_upload.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF,
    PHASE_COMPLETE,
    PHASE_PENDING,
)
from pikpak_upload.drive import DriveClient
from pikpak_upload.errors import UploadError
from pikpak_upload.fingerprint import gcid_from_path
from pikpak_upload.oss import OssClient
from pikpak_upload.structs import SummaryStats
from pikpak_upload.upload import UploadWorkerPool, verify_manifest
from pikpak_upload.utils import SpeedMonitor, format_size, plan_chunks

logger = logging.getLogger(__name__)


class Uploader:
    """Run the check, initiate, transfer and finalize steps for one file."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        drive: DriveClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        min_chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        display_progress: bool = False,
    ):
        self.client = client
        self.drive = drive
        self.concurrency = concurrency
        self.min_chunk_size = min_chunk_size
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.display_progress = display_progress
        self.last_summary: SummaryStats | None = None

    @classmethod
    def from_settings(
        cls,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        display_progress: bool = False,
    ) -> "Uploader":
        captcha = CaptchaClient(
            client,
            device_id=settings.DEVICE_ID,
            user_id=settings.USER_ID,
            salts=load_salt_table(settings.CAPTCHA_SALTS_FILE),
            captcha_token=settings.CAPTCHA_TOKEN,
        )
        drive = DriveClient(client, captcha, access_token=settings.ACCESS_TOKEN)
        return cls(
            client=client,
            drive=drive,
            concurrency=settings.CONCURRENCY,
            min_chunk_size=settings.MIN_CHUNK_SIZE,
            max_attempts=settings.MAX_ATTEMPTS,
            retry_backoff=settings.RETRY_BACKOFF,
            display_progress=display_progress,
        )

    async def upload_file(
        self, path: str | os.PathLike, parent_id: str | None = None
    ) -> str:
        """
        Upload a local file.

        Args:
            path: Local file path
            parent_id: Drive folder id, the default upload folder when omitted

        Returns:
            Drive file id

        Raises:
            OSError: If the file cannot be read
            UploadError: If any remote step fails; an unfinished multipart
                session is left for the object store to expire
        """
        path = Path(path)
        file_size = path.stat().st_size
        fingerprint = await asyncio.to_thread(gcid_from_path, path)

        entry = await self.drive.create_file(path.name, file_size, fingerprint, parent_id)
        logger.debug("upload_file path: %s phase: %s", path, entry.phase)
        if entry.phase == PHASE_COMPLETE:
            logger.info("%s already exists on the drive as %s", path.name, entry.id)
            return entry.id
        if entry.phase != PHASE_PENDING:
            logger.warning("Unexpected phase %s for %s", entry.phase, path.name)
        if entry.target is None:
            raise UploadError(
                f"Drive returned phase {entry.phase!r} without upload parameters"
            )

        oss = OssClient(self.client, entry.target)
        upload_id = await oss.initiate_multipart_upload()

        plan = plan_chunks(file_size, self.concurrency, self.min_chunk_size)
        logger.info(
            "Uploading %s (%s) in %d parts of %s with %d workers",
            path.name,
            format_size(file_size),
            plan.chunk_count,
            format_size(plan.chunk_size),
            plan.worker_count,
        )

        speed_monitor = SpeedMonitor(
            total_parts=plan.chunk_count, display=self.display_progress
        )
        speed_monitor.start()

        pool = UploadWorkerPool(
            oss=oss,
            plan=plan,
            upload_id=upload_id,
            max_attempts=self.max_attempts,
            retry_backoff=self.retry_backoff,
            speed_monitor=speed_monitor,
        )
        manifest = await pool.run(path)
        verify_manifest(manifest, plan.chunk_count)

        await oss.complete_multipart_upload(upload_id, manifest)
        self.last_summary = speed_monitor.summary()
        logger.info("Uploaded %s as %s", path.name, entry.id)
        return entry.id


async def upload_file(
    settings: Settings,
    path: str | os.PathLike,
    parent_id: str | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """
    Upload ``path`` with a client built from ``settings``.

    Args:
        settings: Credentials and transfer settings
        path: Local file path
        parent_id: Drive folder id
        transport: Optional httpx transport, e.g. a mock in tests

    Returns:
        Drive file id
    """
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.TIMEOUT),
        follow_redirects=True,
        transport=transport,
    ) as client:
        uploader = Uploader.from_settings(client, settings)
        return await uploader.upload_file(path, parent_id)
