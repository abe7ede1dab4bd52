from typing import NamedTuple


class UploadTarget(NamedTuple):
    bucket: str
    access_key_id: str
    access_key_secret: str
    endpoint: str
    key: str
    security_token: str


class ChunkPlan(NamedTuple):
    chunk_size: int
    file_size: int
    worker_count: int

    @property
    def chunk_count(self) -> int:
        return -(-self.file_size // self.chunk_size)


class ChunkResult(NamedTuple):
    part_number: int
    etag: str


class CaptchaSaltStep(NamedTuple):
    alg: str
    salt: str


class FileEntry(NamedTuple):
    id: str
    name: str
    phase: str
    target: UploadTarget | None = None


class SummaryStats(NamedTuple):
    total_bytes: int
    total_time: float
    average_speed: float
