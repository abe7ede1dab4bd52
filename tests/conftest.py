"""Shared fixtures: an in-memory drive, captcha endpoint and object store."""

import hashlib
import json
from collections import Counter
from xml.etree import ElementTree

import httpx
import pytest

from pikpak_upload.structs import UploadTarget

OSS_ENDPOINT = "oss.example.com"
UPLOAD_ID = "0004B9895DBBB6EC98E36"


@pytest.fixture
def target():
    return UploadTarget(
        bucket="test-bucket",
        access_key_id="test-key-id",
        access_key_secret="test-secret",
        endpoint=OSS_ENDPOINT,
        key="upload/test-object",
        security_token="test-security-token",
    )


class FakeCloud:
    """Answer drive, captcha and object store requests from memory."""

    def __init__(self, target, *, phase="PHASE_TYPE_PENDING", file_id="file-1"):
        self.target = target
        self.phase = phase
        self.file_id = file_id
        self.requests: list[httpx.Request] = []
        self.parts: dict[int, bytes] = {}
        self.part_attempts: Counter = Counter()
        self.part_failures: dict[int, int] = {}
        self.missing_etag_parts: set[int] = set()
        self.initiate_status = 200
        self.complete_status = 200
        self.completed_parts: list[tuple[int, str]] | None = None
        self.captcha_tokens = ["captcha-1", "captcha-2", "captcha-3"]
        self.captcha_error: tuple[int, str] | None = None
        self.drive_errors: list[dict] = []
        self.include_params = True

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "user.mypikpak.com":
            return self.captcha(request)
        if request.url.host == "api-drive.mypikpak.com":
            return self.drive(request)
        if request.url.host == OSS_ENDPOINT:
            return self.oss(request)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def captcha(self, request):
        if self.captcha_error is not None:
            code, message = self.captcha_error
            return httpx.Response(400, json={"error_code": code, "error": message})
        return httpx.Response(
            200, json={"captcha_token": self.captcha_tokens.pop(0), "expires_in": 300}
        )

    def drive(self, request):
        if self.drive_errors:
            return httpx.Response(400, json=self.drive_errors.pop(0))
        body = {
            "file": {"id": self.file_id, "name": "name", "phase": self.phase},
        }
        if self.phase != "PHASE_TYPE_COMPLETE" and self.include_params:
            body["resumable"] = {
                "kind": "drive#resumable",
                "provider": "PROVIDER_ALIYUN",
                "params": {
                    "access_key_id": self.target.access_key_id,
                    "access_key_secret": self.target.access_key_secret,
                    "bucket": self.target.bucket,
                    "endpoint": self.target.endpoint,
                    "key": self.target.key,
                    "security_token": self.target.security_token,
                },
            }
        return httpx.Response(200, json=body)

    def oss(self, request):
        params = request.url.params
        if request.method == "POST" and "uploads" in params:
            if self.initiate_status != 200:
                return httpx.Response(self.initiate_status, text="<Error>denied</Error>")
            return httpx.Response(
                200,
                content=(
                    "<InitiateMultipartUploadResult>"
                    f"<Bucket>{self.target.bucket}</Bucket>"
                    f"<Key>{self.target.key}</Key>"
                    f"<UploadId>{UPLOAD_ID}</UploadId>"
                    "</InitiateMultipartUploadResult>"
                ).encode(),
            )

        if request.method == "PUT":
            part_number = int(params["partNumber"])
            self.part_attempts[part_number] += 1
            if self.part_failures.get(part_number, 0) > 0:
                self.part_failures[part_number] -= 1
                return httpx.Response(500, text="internal error")
            if part_number in self.missing_etag_parts:
                return httpx.Response(200)
            self.parts[part_number] = request.content
            etag = hashlib.md5(request.content).hexdigest().upper()
            return httpx.Response(200, headers={"ETag": f'"{etag}"'})

        if request.method == "POST" and "uploadId" in params:
            if self.complete_status != 200:
                return httpx.Response(self.complete_status, text="<Error>InvalidPart</Error>")
            root = ElementTree.fromstring(request.content)
            self.completed_parts = [
                (int(p.findtext("PartNumber")), p.findtext("ETag"))
                for p in root.findall("Part")
            ]
            return httpx.Response(200, content=b"<CompleteMultipartUploadResult/>")

        return httpx.Response(400)


@pytest.fixture
def cloud(target):
    return FakeCloud(target)


@pytest.fixture
def data_file(tmp_path):
    def make(size: int, name: str = "data.bin"):
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return path

    return make


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content)
