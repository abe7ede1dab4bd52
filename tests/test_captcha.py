"""Tests for the captcha signature chain and token exchange."""

import hashlib
import json

import httpx
import pytest

from pikpak_upload.captcha import (
    CaptchaClient,
    build_captcha_seed,
    captcha_sign,
    load_salt_table,
)
from pikpak_upload.constants import CLIENT_ID, CLIENT_VERSION, PACKAGE_NAME
from pikpak_upload.errors import CaptchaError
from pikpak_upload.structs import CaptchaSaltStep

from conftest import FakeCloud, json_body

SALTS = (
    CaptchaSaltStep("md5", ""),
    CaptchaSaltStep("md5", "abc"),
    CaptchaSaltStep("md5", "xyz"),
)


def md5(value: str) -> str:
    return hashlib.md5(value.encode()).hexdigest()


class TestCaptchaSign:
    def test_folds_every_salt(self):
        expected = md5(md5(md5("seed") + "abc") + "xyz")
        assert captcha_sign("seed", SALTS) == "1." + expected

    def test_output_shape(self):
        result = captcha_sign("seed", SALTS)
        assert result.startswith("1.")
        assert len(result) == 2 + 32
        int(result[2:], 16)

    def test_deterministic(self):
        assert captcha_sign("seed", SALTS) == captcha_sign("seed", SALTS)

    def test_order_sensitive(self):
        reordered = (SALTS[0], SALTS[2], SALTS[1])
        assert captcha_sign("seed", reordered) != captcha_sign("seed", SALTS)

    def test_unsupported_algorithm_is_skipped(self):
        with_unknown = (SALTS[0], CaptchaSaltStep("sha256", "zzz"), SALTS[1], SALTS[2])
        assert captcha_sign("seed", with_unknown) == captcha_sign("seed", SALTS)

    def test_empty_table_keeps_seed(self):
        assert captcha_sign("seed", ()) == "1.seed"


class TestSaltTable:
    def test_bundled_table(self):
        salts = load_salt_table()
        assert len(salts) == 9
        assert all(step.alg == "md5" for step in salts)
        assert salts[0].salt == ""
        assert salts[4].salt == "S"

    def test_custom_table(self, tmp_path):
        path = tmp_path / "salts.json"
        path.write_text(json.dumps([{"alg": "md5", "salt": "a"}, {"alg": "sha1", "salt": "b"}]))
        assert load_salt_table(path) == (
            CaptchaSaltStep("md5", "a"),
            CaptchaSaltStep("sha1", "b"),
        )

    def test_rejects_non_list(self, tmp_path):
        path = tmp_path / "salts.json"
        path.write_text(json.dumps({"alg": "md5"}))
        with pytest.raises(ValueError):
            load_salt_table(path)


def test_build_captcha_seed():
    assert build_captcha_seed("c", "1.0", "pkg", "dev", "123") == "c1.0pkgdev123"


class TestCaptchaClient:
    @pytest.mark.asyncio
    async def test_init_captcha(self, target):
        cloud = FakeCloud(target)
        async with httpx.AsyncClient(transport=cloud.transport()) as client:
            captcha = CaptchaClient(
                client,
                device_id="device",
                user_id="user",
                salts=SALTS,
                clock=lambda: 1700000000000,
            )
            token = await captcha.init_captcha("POST:/drive/v1/files")

        assert token == "captcha-1"
        assert captcha.captcha_token == "captcha-1"

        (request,) = cloud.requests
        assert request.url.params["client_id"] == CLIENT_ID
        body = json_body(request)
        assert body["action"] == "POST:/drive/v1/files"
        assert body["device_id"] == "device"
        assert "captcha_token" not in body
        seed = build_captcha_seed(CLIENT_ID, CLIENT_VERSION, PACKAGE_NAME, "device", "1700000000000")
        assert body["meta"] == {
            "captcha_sign": captcha_sign(seed, SALTS),
            "user_id": "user",
            "package_name": PACKAGE_NAME,
            "client_version": CLIENT_VERSION,
            "timestamp": "1700000000000",
        }

    @pytest.mark.asyncio
    async def test_sends_previous_token(self, target):
        cloud = FakeCloud(target)
        async with httpx.AsyncClient(transport=cloud.transport()) as client:
            captcha = CaptchaClient(
                client, device_id="device", user_id="user", salts=SALTS, captcha_token="old"
            )
            await captcha.init_captcha("POST:/drive/v1/files")

        assert json_body(cloud.requests[0])["captcha_token"] == "old"
        assert captcha.captcha_token == "captcha-1"

    @pytest.mark.asyncio
    async def test_error_code_raises(self, target):
        cloud = FakeCloud(target)
        cloud.captcha_error = (4002, "captcha_sign_invalid")
        async with httpx.AsyncClient(transport=cloud.transport()) as client:
            captcha = CaptchaClient(client, device_id="device", user_id="user", salts=SALTS)
            with pytest.raises(CaptchaError) as exc_info:
                await captcha.init_captcha("POST:/drive/v1/files")

        assert exc_info.value.code == 4002
        assert exc_info.value.message == "captcha_sign_invalid"
        assert "shield/captcha/init" in exc_info.value.url
        assert captcha.captcha_token == ""

    @pytest.mark.asyncio
    async def test_non_json_error_page_raises(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            captcha = CaptchaClient(client, device_id="device", user_id="user", salts=SALTS)
            with pytest.raises(CaptchaError) as exc_info:
                await captcha.init_captcha("POST:/drive/v1/files")

        assert exc_info.value.code == 502
        assert "Bad Gateway" in exc_info.value.message
        assert "shield/captcha/init" in exc_info.value.url
        assert captcha.captcha_token == ""
