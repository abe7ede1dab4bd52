import hashlib
import json
import logging
import time
from collections.abc import Callable, Iterable
from importlib import resources
from pathlib import Path

import httpx

from pikpak_upload.constants import (
    CAPTCHA_ALG_MD5,
    CAPTCHA_INIT_URL,
    CAPTCHA_REDIRECT_URI,
    CAPTCHA_SIGN_VERSION,
    CLIENT_ID,
    CLIENT_VERSION,
    PACKAGE_NAME,
)
from pikpak_upload.errors import CaptchaError
from pikpak_upload.structs import CaptchaSaltStep

logger = logging.getLogger(__name__)


def load_salt_table(path: str | Path | None = None) -> tuple[CaptchaSaltStep, ...]:
    """
    Load the ordered salt table used by the captcha signature.

    Args:
        path: JSON file with a list of ``{"alg", "salt"}`` objects. The table
            bundled with the package is used when omitted.

    Returns:
        Tuple of salt steps in table order
    """
    if path is None:
        raw = resources.files("pikpak_upload").joinpath("captcha_salts.json").read_text(
            encoding="utf-8"
        )
    else:
        raw = Path(path).read_text(encoding="utf-8")

    entries = json.loads(raw)
    if not isinstance(entries, list):
        raise ValueError("Captcha salt table must be a JSON list")
    return tuple(CaptchaSaltStep(alg=str(e["alg"]), salt=str(e["salt"])) for e in entries)


def build_captcha_seed(
    client_id: str,
    client_version: str,
    package_name: str,
    device_id: str,
    timestamp: str,
) -> str:
    return client_id + client_version + package_name + device_id + timestamp


def captcha_sign(seed: str, salts: Iterable[CaptchaSaltStep]) -> str:
    """
    Fold the salt table into the seed.

    Each ``md5`` step replaces the running value with ``md5(value + salt)``.
    Steps with any other algorithm are skipped.

    Args:
        seed: Seed string from :func:`build_captcha_seed`
        salts: Ordered salt table

    Returns:
        Versioned signature, e.g. ``1.<32 hex chars>``
    """
    value = seed
    for step in salts:
        if step.alg != CAPTCHA_ALG_MD5:
            continue
        value = hashlib.md5((value + step.salt).encode("utf-8")).hexdigest()
    return CAPTCHA_SIGN_VERSION + value


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


class CaptchaClient:
    """Obtain and hold the captcha token for one device."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        device_id: str,
        user_id: str,
        salts: tuple[CaptchaSaltStep, ...] | None = None,
        captcha_token: str = "",
        clock: Callable[[], int] = _now_millis,
    ):
        """
        Args:
            client: Shared HTTP client
            device_id: Device identifier sent as ``device_id`` / ``X-Peer-Id``
            user_id: Account identifier (the ``sub`` of the access token)
            salts: Salt table, the bundled one when omitted
            captcha_token: Previously issued token, reused until rejected
            clock: Returns the current time in milliseconds
        """
        self.client = client
        self.device_id = device_id
        self.user_id = user_id
        self.salts = salts if salts is not None else load_salt_table()
        self.captcha_token = captcha_token
        self.clock = clock

    def build_payload(self, action: str, timestamp: str) -> dict:
        seed = build_captcha_seed(
            CLIENT_ID, CLIENT_VERSION, PACKAGE_NAME, self.device_id, timestamp
        )
        payload = {
            "action": action,
            "client_id": CLIENT_ID,
            "device_id": self.device_id,
        }
        if self.captcha_token:
            payload["captcha_token"] = self.captcha_token
        payload["meta"] = {
            "captcha_sign": captcha_sign(seed, self.salts),
            "user_id": self.user_id,
            "package_name": PACKAGE_NAME,
            "client_version": CLIENT_VERSION,
            "timestamp": timestamp,
        }
        payload["redirect_uri"] = CAPTCHA_REDIRECT_URI
        return payload

    async def init_captcha(self, action: str) -> str:
        """
        Exchange a signed assertion for a fresh captcha token.

        Args:
            action: ``METHOD:PATH`` of the call the token is meant for,
                e.g. ``POST:/drive/v1/files``

        Returns:
            The new captcha token, also stored on the instance

        Raises:
            CaptchaError: If the endpoint answers with a nonzero error code
                or a body that is not JSON
        """
        timestamp = str(self.clock())
        url = f"{CAPTCHA_INIT_URL}?client_id={CLIENT_ID}"
        response = await self.client.post(
            url,
            json=self.build_payload(action, timestamp),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise CaptchaError(
                url, response.status_code, response.text[:200] or "empty response"
            ) from exc

        error_code = int(body.get("error_code") or 0)
        if error_code != 0:
            raise CaptchaError(url, error_code, body.get("error", ""))
        response.raise_for_status()

        self.captcha_token = body.get("captcha_token", "")
        logger.debug("Obtained captcha token for action %s", action)
        return self.captcha_token
