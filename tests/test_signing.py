"""Tests for OSS request signing."""

import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone

from pikpak_upload.signing import (
    authorization_header,
    canonical_string,
    http_date,
    sign,
    sign_request,
)

DATE = "Mon, 02 Jan 2006 15:04:05 GMT"


class TestHttpDate:
    def test_formats_utc(self):
        now = datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc)
        assert http_date(now) == DATE

    def test_naive_is_utc(self):
        assert http_date(datetime(2006, 1, 2, 15, 4, 5)) == DATE

    def test_converts_other_timezones(self):
        tz = timezone(timedelta(hours=8))
        now = datetime(2006, 1, 2, 23, 4, 5, tzinfo=tz)
        assert http_date(now) == DATE


class TestCanonicalString:
    def test_layout(self):
        headers = {
            "Content-Type": "application/octet-stream",
            "X-Oss-Security-Token": "token",
            "Date": DATE,
        }
        result = canonical_string(
            "PUT",
            "application/octet-stream",
            DATE,
            headers,
            "/bucket/key?partNumber=1&uploadId=abc",
        )
        assert result == (
            "PUT\n"
            "\n"
            "application/octet-stream\n"
            f"{DATE}\n"
            "x-oss-security-token:token\n"
            "/bucket/key?partNumber=1&uploadId=abc"
        )

    def test_only_vendor_headers_sorted_and_lowercased(self):
        headers = {
            "X-OSS-Meta-B": "2",
            "x-oss-meta-a": "1",
            "User-Agent": "agent",
            "X-Other": "ignored",
        }
        result = canonical_string("POST", "text/plain", DATE, headers, "/b/k?uploads")
        lines = result.split("\n")
        assert lines[4:6] == ["x-oss-meta-a:1", "x-oss-meta-b:2"]
        assert lines[-1] == "/b/k?uploads"
        assert "agent" not in result
        assert "ignored" not in result

    def test_no_vendor_headers(self):
        result = canonical_string("post", "", DATE, {}, "/b/k?uploadId=1")
        assert result == f"POST\n\n\n{DATE}\n/b/k?uploadId=1"


class TestSign:
    def test_matches_hmac_sha1(self):
        canonical = f"PUT\n\napplication/octet-stream\n{DATE}\n/b/k?uploads"
        expected = base64.b64encode(
            hmac.new(b"secret", canonical.encode(), hashlib.sha1).digest()
        ).decode()
        assert sign("secret", canonical) == expected

    def test_deterministic(self):
        kwargs = dict(
            secret="secret",
            method="PUT",
            content_type="application/octet-stream",
            date=DATE,
            headers={"X-Oss-Security-Token": "token"},
            resource="/bucket/key?partNumber=2&uploadId=abc",
        )
        assert sign_request(**kwargs) == sign_request(**kwargs)

    def test_sensitive_to_inputs(self):
        kwargs = dict(
            secret="secret",
            method="PUT",
            content_type="application/octet-stream",
            date=DATE,
            headers={"X-Oss-Security-Token": "token"},
            resource="/bucket/key?partNumber=2&uploadId=abc",
        )
        base = sign_request(**kwargs)
        assert sign_request(**{**kwargs, "secret": "other"}) != base
        assert sign_request(**{**kwargs, "date": "Tue, 03 Jan 2006 15:04:05 GMT"}) != base
        assert sign_request(**{**kwargs, "resource": "/bucket/key?partNumber=3&uploadId=abc"}) != base
        assert sign_request(**{**kwargs, "headers": {"X-Oss-Security-Token": "t2"}}) != base

    def test_header_name_case_does_not_matter(self):
        common = dict(
            secret="secret",
            method="POST",
            content_type="application/octet-stream",
            date=DATE,
            resource="/b/k?uploads",
        )
        assert sign_request(headers={"X-OSS-SECURITY-TOKEN": "t"}, **common) == sign_request(
            headers={"x-oss-security-token": "t"}, **common
        )


def test_authorization_header():
    assert authorization_header("id", "c2lnbmF0dXJl") == "OSS id:c2lnbmF0dXJl"
