import asyncio
import re
import time
import uuid

from pikpak_upload.config import Settings
from pikpak_upload.constants import DEFAULT_CHUNK_SIZE, MAX_PARTS
from pikpak_upload.structs import ChunkPlan, SummaryStats


class CredentialManager:
    """Fill in account credentials missing from the settings."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def collect_credentials(self):
        """
        Prompt for the access token and user id when they are not configured.
        A random device id is generated if none is set.

        Returns:
            self for method chaining
        """
        if not self.settings.ACCESS_TOKEN:
            print("Enter PikPak credentials:")
            self.settings.ACCESS_TOKEN = input("Access token: ").strip()
        if not self.settings.USER_ID:
            self.settings.USER_ID = input("User id: ").strip()
        if not self.settings.DEVICE_ID:
            self.settings.DEVICE_ID = uuid.uuid4().hex

        return self

    def get_settings(self) -> Settings:
        return self.settings


def plan_chunks(
    file_size: int,
    worker_count: int,
    min_chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ChunkPlan:
    """
    Choose the chunk size for a file.

    The chunk size never drops below ``min_chunk_size`` and grows for large
    files so that the part count stays within the object store limit.

    Args:
        file_size: Size of the file in bytes
        worker_count: Number of parallel workers
        min_chunk_size: Chunk size floor in bytes

    Returns:
        ChunkPlan for the file
    """
    if file_size < 0:
        raise ValueError(f"File size must not be negative: {file_size}")
    if min_chunk_size <= 0:
        raise ValueError(f"Chunk size floor must be positive: {min_chunk_size}")
    if worker_count <= 0:
        raise ValueError(f"Worker count must be positive: {worker_count}")

    chunk_size = max(min_chunk_size, -(-file_size // MAX_PARTS))
    return ChunkPlan(chunk_size=chunk_size, file_size=file_size, worker_count=worker_count)


class SpeedMonitor:
    """Track and display upload speed and part completion."""

    def __init__(
        self,
        update_interval: float = 0.5,
        total_parts: int = 0,
        speed_window_size: int = 5,
        display: bool = False,
    ):
        """
        Initialize the speed monitor.

        Args:
            update_interval: Interval in seconds for updating the display
            total_parts: Total number of parts to upload
            speed_window_size: Number of recent measurements to use for speed calculation
            display: Print a progress line to the terminal
        """
        self.start_time = None
        self.total_bytes = 0
        self.bytes_since_last_update = 0
        self.current_speed = 0
        self.recent_speeds = []
        self.speed_window_size = speed_window_size
        self.update_interval = update_interval
        self.last_update = 0
        self.lock = asyncio.Lock()
        self.completed_parts = 0
        self.total_parts = total_parts
        self.display = display
        self.last_line_length = 0

    def start(self):
        """Start monitoring."""
        self.start_time = time.time()
        self.last_update = self.start_time

    async def update(self, bytes_uploaded: int):
        """
        Record uploaded bytes.

        Args:
            bytes_uploaded: Number of bytes acknowledged by the object store
        """
        async with self.lock:
            self.total_bytes += bytes_uploaded
            self.bytes_since_last_update += bytes_uploaded
            current_time = time.time()

            if current_time - self.last_update >= self.update_interval:
                time_since_last_update = current_time - self.last_update
                if time_since_last_update > 0:
                    recent_speed = self.bytes_since_last_update / time_since_last_update
                    self.recent_speeds.append(recent_speed)

                    if len(self.recent_speeds) > self.speed_window_size:
                        self.recent_speeds = self.recent_speeds[
                            -self.speed_window_size :
                        ]

                    self.current_speed = sum(self.recent_speeds) / len(
                        self.recent_speeds
                    )

                self.bytes_since_last_update = 0
                self.last_update = current_time
                self.display_progress()

    async def part_completed(self):
        """Increment the completed parts counter."""
        async with self.lock:
            self.completed_parts += 1
            self.display_progress()

    def display_progress(self):
        """Display current speed, completed parts and total data transferred."""
        if not self.display:
            return

        progress_str = f"Current speed: {format_speed(self.current_speed)} | Transferred: {format_size(self.total_bytes)}"
        if self.total_parts > 0:
            progress_str += f" | Parts: {self.completed_parts}/{self.total_parts}"

        # Pad with spaces to overwrite any remaining characters from previous line
        if len(progress_str) < self.last_line_length:
            progress_str += " " * (self.last_line_length - len(progress_str))
        self.last_line_length = len(progress_str)

        print(f"\r{progress_str}", end="")

    def summary(self) -> SummaryStats:
        total_time = time.time() - self.start_time if self.start_time else 0.0
        average_speed = self.total_bytes / total_time if total_time > 0 else 0.0
        return SummaryStats(
            total_bytes=self.total_bytes,
            total_time=total_time,
            average_speed=average_speed,
        )

    @staticmethod
    def display_final_stats(results: SummaryStats):
        """
        Display final transfer statistics.

        Args:
            results: Summary returned by :meth:`summary`
        """
        print("\n\nUpload Results:")
        print(f"Total data transferred: {format_size(results.total_bytes)}")
        print(f"Total time: {results.total_time:.2f} seconds")
        print(f"Average upload speed: {format_speed(results.average_speed)}")


def format_size(size: int) -> str:
    """
    Format size in bytes to human-readable format.

    Args:
        size: Size in bytes

    Returns:
        Formatted size string
    """
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    return f"{size:.2f} {units[unit_index]}"


def format_speed(speed: float) -> str:
    """
    Format speed in bytes/second to human-readable format.

    Args:
        speed: Speed in bytes per second

    Returns:
        Formatted speed string
    """
    units = ["B/s", "KB/s", "MB/s", "GB/s"]
    unit_index = 0

    while speed >= 1024 and unit_index < len(units) - 1:
        speed /= 1024
        unit_index += 1

    return f"{speed:.2f} {units[unit_index]}"


def parse_size(size_str: str) -> int:
    """
    Parse a size string with optional suffix (KB, MB, GB) to bytes.

    Args:
        size_str: Size string (e.g., "256KB", "8MB", "1GB")

    Returns:
        Size in bytes
    """
    match = re.match(r"^(\d+)([KMG]B)?$", size_str, re.IGNORECASE)
    if not match:
        raise ValueError(
            f"Invalid size format: {size_str}. Expected format: NUMBER[KB|MB|GB]"
        )

    value, unit = match.groups()
    value = int(value)

    if unit:
        unit = unit.upper()
        if unit == "KB":
            value *= 1024
        elif unit == "MB":
            value *= 1024**2
        elif unit == "GB":
            value *= 1024**3

    return value
