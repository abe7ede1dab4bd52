import asyncio
import logging
import os
from collections import Counter
from collections.abc import Sequence

import httpx

from pikpak_upload.constants import DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_BACKOFF
from pikpak_upload.errors import ChunkUploadError, IncompleteUploadError, ObjectStoreError
from pikpak_upload.oss import OssClient
from pikpak_upload.structs import ChunkPlan, ChunkResult
from pikpak_upload.utils import SpeedMonitor

logger = logging.getLogger(__name__)

# Marks the result channel as closed
_CLOSED = object()


class ResultCollector:
    """Drain the result channel into an ordered completion manifest."""

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self.results: list[ChunkResult] = []

    async def drain(self) -> list[ChunkResult]:
        """
        Consume results until the channel is closed.

        Returns:
            Collected results sorted ascending by part number
        """
        while True:
            item = await self.queue.get()
            if item is _CLOSED:
                break
            self.results.append(item)

        return sorted(self.results, key=lambda r: r.part_number)


def verify_manifest(manifest: Sequence[ChunkResult], chunk_count: int) -> None:
    """
    Check that the manifest holds every part from 1 to ``chunk_count`` once.

    Raises:
        IncompleteUploadError: On missing, duplicated or out of range part numbers
    """
    counts = Counter(r.part_number for r in manifest)
    missing = [n for n in range(1, chunk_count + 1) if n not in counts]
    unexpected = sorted(
        n for n, c in counts.items() if c > 1 or not 1 <= n <= chunk_count
    )
    if missing or unexpected:
        raise IncompleteUploadError(missing, unexpected)


class UploadWorkerPool:
    """Upload every chunk of a file exactly once with a fixed pool of workers.

    Worker ``i`` handles chunk indices ``i, i + W, i + 2W, ...`` where ``W``
    is the worker count, so workers never share a work queue. Results are
    sent over a bounded queue and ordered by :class:`ResultCollector`.
    """

    def __init__(
        self,
        *,
        oss: OssClient,
        plan: ChunkPlan,
        upload_id: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        speed_monitor: SpeedMonitor | None = None,
    ):
        """
        Args:
            oss: Object store client for the upload target
            plan: Chunk plan of the file
            upload_id: Multipart upload session
            max_attempts: Attempts per chunk before the upload is aborted
            retry_backoff: Base delay in seconds between attempts
            speed_monitor: Optional progress tracker
        """
        self.oss = oss
        self.plan = plan
        self.upload_id = upload_id
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.speed_monitor = speed_monitor
        self._pending_reads: set[asyncio.Future] = set()

    async def read_chunk(self, fd: int, index: int) -> bytes:
        offset = index * self.plan.chunk_size
        size = min(self.plan.chunk_size, self.plan.file_size - offset)
        # run() waits for pending reads before closing fd
        read = asyncio.ensure_future(asyncio.to_thread(os.pread, fd, size, offset))
        self._pending_reads.add(read)
        read.add_done_callback(self._pending_reads.discard)
        data = await asyncio.shield(read)
        if len(data) != size:
            raise OSError(f"Short read at offset {offset}: {len(data)}/{size}")
        return data

    async def upload_chunk(self, fd: int, index: int) -> ChunkResult:
        """
        Read, sign and upload one chunk, retrying failed attempts.

        Args:
            fd: File descriptor used for positioned reads
            index: 0-based chunk index

        Returns:
            ChunkResult with the ETag issued by the object store

        Raises:
            ChunkUploadError: If every attempt failed
        """
        part_number = index + 1
        for attempt in range(1, self.max_attempts + 1):
            try:
                data = await self.read_chunk(fd, index)
                etag = await self.oss.upload_part(self.upload_id, part_number, data)
            except (OSError, httpx.HTTPError, ObjectStoreError) as exc:
                logger.warning(
                    "Attempt %d/%d for part %d failed: %s",
                    attempt,
                    self.max_attempts,
                    part_number,
                    exc,
                )
                if attempt == self.max_attempts:
                    raise ChunkUploadError(part_number, attempt) from exc
                await asyncio.sleep(self.retry_backoff * attempt)
                continue

            if self.speed_monitor is not None:
                await self.speed_monitor.update(len(data))
                await self.speed_monitor.part_completed()
            return ChunkResult(part_number=part_number, etag=etag)

    async def worker(self, fd: int, worker_index: int, queue: asyncio.Queue) -> None:
        for index in range(worker_index, self.plan.chunk_count, self.plan.worker_count):
            result = await self.upload_chunk(fd, index)
            await queue.put(result)

    async def run(self, path: str | os.PathLike) -> list[ChunkResult]:
        """
        Upload all chunks of ``path``.

        Workers are awaited first, then the result channel is closed, then
        the collector is awaited. Worker failures are raised only after the
        collector has finished.

        Args:
            path: Local file described by the plan

        Returns:
            Completion manifest sorted by part number

        Raises:
            ChunkUploadError: If any chunk could not be uploaded
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.plan.worker_count)
        collector = ResultCollector(queue)

        fd = os.open(path, os.O_RDONLY)
        drain = asyncio.create_task(collector.drain())
        try:
            outcomes = await asyncio.gather(
                *(
                    self.worker(fd, i, queue)
                    for i in range(self.plan.worker_count)
                ),
                return_exceptions=True,
            )
            await queue.put(_CLOSED)
            manifest = await drain
        finally:
            if not drain.done():
                drain.cancel()
            if self._pending_reads:
                await asyncio.wait(set(self._pending_reads))
            os.close(fd)

        failures = [o for o in outcomes if isinstance(o, BaseException)]
        for failure in failures[1:]:
            logger.error("Additional upload failure: %s", failure)
        if failures:
            raise failures[0]

        logger.debug("Collected %d of %d parts", len(manifest), self.plan.chunk_count)
        return manifest
