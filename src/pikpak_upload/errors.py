"""Exceptions raised by the upload pipeline."""


class UploadError(RuntimeError):
    """Base class for every failure surfaced by an upload."""


class RemoteApiError(UploadError):
    """A drive endpoint answered with a nonzero application error code."""

    def __init__(self, url: str, code: int, message: str):
        super().__init__(f"url: {url} error_code: {code}, error: {message}")
        self.url = url
        self.code = code
        self.message = message


class DriveApiError(RemoteApiError):
    """Raised by the drive metadata API."""


class CaptchaError(RemoteApiError):
    """Raised by the captcha exchange."""


class ObjectStoreError(UploadError):
    """Initiate or complete call rejected by the object store."""

    def __init__(self, url: str, status_code: int | None, body: str = ""):
        message = f"Object store request to {url} failed"
        if status_code is not None:
            message += f" with status {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.body = body


class ChunkUploadError(UploadError):
    """A single chunk could not be uploaded within its attempt budget."""

    def __init__(self, part_number: int, attempts: int):
        super().__init__(f"Part {part_number} failed after {attempts} attempt(s)")
        self.part_number = part_number
        self.attempts = attempts


class IncompleteUploadError(UploadError):
    """The collected manifest does not cover every part exactly once."""

    def __init__(self, missing: list[int], unexpected: list[int]):
        details = []
        if missing:
            details.append(f"missing parts {missing}")
        if unexpected:
            details.append(f"duplicate or out of range parts {unexpected}")
        super().__init__("Upload manifest is incomplete: " + ", ".join(details))
        self.missing = missing
        self.unexpected = unexpected
