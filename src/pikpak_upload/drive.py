import logging

import httpx

from pikpak_upload.captcha import CaptchaClient
from pikpak_upload.constants import (
    CAPTCHA_INVALID_CODE,
    CAPTCHA_INVALID_ERROR,
    CLIENT_VERSION_CODE,
    CREATE_FILE_ACTION,
    DRIVE_FILES_URL,
    KIND_FILE,
)
from pikpak_upload.errors import DriveApiError
from pikpak_upload.structs import FileEntry, UploadTarget

logger = logging.getLogger(__name__)


def parse_upload_target(params: dict) -> UploadTarget:
    return UploadTarget(
        bucket=params.get("bucket", ""),
        access_key_id=params.get("access_key_id", ""),
        access_key_secret=params.get("access_key_secret", ""),
        endpoint=params.get("endpoint", ""),
        key=params.get("key", ""),
        security_token=params.get("security_token", ""),
    )


class DriveClient:
    """The subset of the drive metadata API needed to start an upload."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        captcha: CaptchaClient,
        *,
        access_token: str,
    ):
        self.client = client
        self.captcha = captcha
        self.access_token = access_token

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json; charset=utf-8",
            "Product_flavor_name": "cha",
            "X-Captcha-Token": self.captcha.captcha_token,
            "X-Client-Version-Code": CLIENT_VERSION_CODE,
            "X-Peer-Id": self.captcha.device_id,
            "X-User-Region": "1",
            "X-Alt-Capability": "3",
            "Country": "CN",
        }

    async def create_file(
        self,
        name: str,
        size: int,
        fingerprint: str,
        parent_id: str | None = None,
    ) -> FileEntry:
        """
        Register a file entry and learn whether its content must be uploaded.

        Args:
            name: File name on the drive
            size: File size in bytes
            fingerprint: Content hash (GCID)
            parent_id: Target folder, the default upload folder when omitted

        Returns:
            FileEntry; ``target`` is set when the upload is still pending

        Raises:
            DriveApiError: If the API answers with a nonzero error code
        """
        payload = {
            "body": {"duration": "", "width": "", "height": ""},
            "kind": KIND_FILE,
            "name": name,
            "size": str(size),
            "hash": fingerprint,
            "upload_type": "UPLOAD_TYPE_RESUMABLE",
            "objProvider": {"provider": "UPLOAD_TYPE_UNKNOWN"},
        }
        if parent_id:
            payload["parent_id"] = parent_id

        if not self.captcha.captcha_token:
            await self.captcha.init_captcha(CREATE_FILE_ACTION)

        body = await self._post(payload)
        if self._captcha_rejected(body):
            logger.info("Captcha token rejected, deriving a new one")
            await self.captcha.init_captcha(CREATE_FILE_ACTION)
            body = await self._post(payload)

        error_code = int(body.get("error_code") or 0)
        if error_code != 0:
            raise DriveApiError(DRIVE_FILES_URL, error_code, body.get("error", ""))

        file = body.get("file") or {}
        entry = FileEntry(
            id=file.get("id", ""),
            name=file.get("name", name),
            phase=file.get("phase", ""),
        )
        params = (body.get("resumable") or {}).get("params")
        if params:
            entry = entry._replace(target=parse_upload_target(params))

        logger.debug("create_file %s phase: %s", name, entry.phase)
        return entry

    async def _post(self, payload: dict) -> dict:
        response = await self.client.post(
            DRIVE_FILES_URL, json=payload, headers=self.headers()
        )
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise
        if not body.get("error_code"):
            response.raise_for_status()
        return body

    @staticmethod
    def _captcha_rejected(body: dict) -> bool:
        return (
            int(body.get("error_code") or 0) == CAPTCHA_INVALID_CODE
            or body.get("error") == CAPTCHA_INVALID_ERROR
        )
