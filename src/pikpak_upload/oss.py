"""Signed calls against the OSS-compatible object store."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from urllib.parse import urlencode
from xml.etree import ElementTree

import httpx

from pikpak_upload.constants import OSS_CONTENT_TYPE, OSS_USER_AGENT
from pikpak_upload.errors import ObjectStoreError
from pikpak_upload.signing import authorization_header, http_date, sign_request
from pikpak_upload.structs import ChunkResult, UploadTarget

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_complete_payload(manifest: Sequence[ChunkResult]) -> bytes:
    """Serialize the manifest into a ``CompleteMultipartUpload`` document."""
    root = ElementTree.Element("CompleteMultipartUpload")
    for result in manifest:
        part = ElementTree.SubElement(root, "Part")
        ElementTree.SubElement(part, "PartNumber").text = str(result.part_number)
        ElementTree.SubElement(part, "ETag").text = result.etag
    return ElementTree.tostring(root, encoding="utf-8", xml_declaration=False)


def parse_upload_id(content: bytes) -> str:
    root = ElementTree.fromstring(content)
    return (root.findtext("{*}UploadId") or "").strip()


class OssClient:
    """Drive one multipart upload against the store described by an UploadTarget."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        target: UploadTarget,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            client: Shared HTTP client
            target: Bucket, key and temporary credentials for this upload
            clock: Returns the current time used for the Date header
        """
        self.client = client
        self.target = target
        self.clock = clock

    def url(self, query: str) -> str:
        return f"https://{self.target.endpoint}/{self.target.key}?{query}"

    def resource(self, query: str) -> str:
        return f"/{self.target.bucket}/{self.target.key}?{query}"

    def signed_headers(self, method: str, query: str) -> dict[str, str]:
        """
        Build the headers of a request, including its Authorization header.

        Args:
            method: HTTP method
            query: Raw query string of the request

        Returns:
            Header dictionary ready to send
        """
        headers = {
            "Content-Type": OSS_CONTENT_TYPE,
            "Date": http_date(self.clock()),
            "User-Agent": OSS_USER_AGENT,
            "X-Oss-Security-Token": self.target.security_token,
        }
        signature = sign_request(
            secret=self.target.access_key_secret,
            method=method,
            content_type=headers["Content-Type"],
            date=headers["Date"],
            headers=headers,
            resource=self.resource(query),
        )
        headers["Authorization"] = authorization_header(
            self.target.access_key_id, signature
        )
        return headers

    async def initiate_multipart_upload(self) -> str:
        """
        Start a multipart upload session.

        Returns:
            Upload ID

        Raises:
            ObjectStoreError: If the store rejects the call or returns no upload ID
        """
        query = "uploads"
        url = self.url(query)
        try:
            response = await self.client.post(
                url, headers=self.signed_headers("POST", query)
            )
        except httpx.HTTPError as exc:
            raise ObjectStoreError(url, None, str(exc)) from exc

        if response.is_error:
            raise ObjectStoreError(url, response.status_code, response.text)

        try:
            upload_id = parse_upload_id(response.content)
        except ElementTree.ParseError as exc:
            raise ObjectStoreError(url, response.status_code, response.text) from exc
        if not upload_id:
            raise ObjectStoreError(url, response.status_code, "response missing UploadId")

        logger.debug("Initiated multipart upload %s for %s", upload_id, self.target.key)
        return upload_id

    async def upload_part(self, upload_id: str, part_number: int, data: bytes) -> str:
        """
        Upload the bytes of one part.

        Args:
            upload_id: Upload ID from :meth:`initiate_multipart_upload`
            part_number: 1-based part number
            data: Raw chunk bytes

        Returns:
            ETag of the part with surrounding quotes removed

        Raises:
            httpx.HTTPError: On transport failures and error responses
            ObjectStoreError: If the response carries no ETag
        """
        query = urlencode([("partNumber", part_number), ("uploadId", upload_id)])
        url = self.url(query)
        response = await self.client.put(
            url, headers=self.signed_headers("PUT", query), content=data
        )
        response.raise_for_status()

        etag = response.headers.get("ETag", "").strip('"')
        if not etag:
            raise ObjectStoreError(url, response.status_code, f"No ETag received for part {part_number}")
        return etag

    async def complete_multipart_upload(
        self, upload_id: str, manifest: Sequence[ChunkResult]
    ) -> None:
        """
        Assemble the uploaded parts into the final object.

        Args:
            upload_id: Upload ID from :meth:`initiate_multipart_upload`
            manifest: Parts sorted ascending by part number

        Raises:
            ObjectStoreError: If the store does not accept the manifest
        """
        query = urlencode([("uploadId", upload_id)])
        url = self.url(query)
        try:
            response = await self.client.post(
                url,
                headers=self.signed_headers("POST", query),
                content=build_complete_payload(manifest),
            )
        except httpx.HTTPError as exc:
            raise ObjectStoreError(url, None, str(exc)) from exc

        if response.is_error:
            raise ObjectStoreError(url, response.status_code, response.text)
        logger.debug("Completed multipart upload %s with %d parts", upload_id, len(manifest))
