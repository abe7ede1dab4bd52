"""OSS request signing.

Every object store call (initiate, part upload and complete) carries an
``Authorization: OSS <access key id>:<signature>`` header. The signature is
the base64 encoded HMAC-SHA1 of a canonical string built from the request.
"""

import base64
import hashlib
import hmac
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import format_datetime

from pikpak_upload.constants import OSS_HEADER_PREFIX


def http_date(now: datetime) -> str:
    """
    Format a timestamp the way the ``Date`` header expects it.

    Args:
        now: Timestamp, naive values are taken as UTC

    Returns:
        Date string such as ``Mon, 02 Jan 2006 15:04:05 GMT``
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return format_datetime(now.astimezone(timezone.utc), usegmt=True)


def canonical_string(
    method: str,
    content_type: str,
    date: str,
    headers: Mapping[str, str],
    resource: str,
) -> str:
    """
    Build the string to sign for one request.

    Args:
        method: HTTP method
        content_type: Value of the Content-Type header
        date: Value of the Date header
        headers: Outbound headers, only ``x-oss-*`` ones are signed
        resource: ``/{bucket}/{key}?{query}``

    Returns:
        Newline-joined canonical string
    """
    oss_headers = sorted(
        (name.lower(), value)
        for name, value in headers.items()
        if name.lower().startswith(OSS_HEADER_PREFIX)
    )
    # The content MD5 line is always left empty
    lines = [method.upper(), "", content_type, date]
    lines.extend(f"{name}:{value}" for name, value in oss_headers)
    lines.append(resource)
    return "\n".join(lines)


def sign(secret: str, canonical: str) -> str:
    digest = hmac.new(
        secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_request(
    *,
    secret: str,
    method: str,
    content_type: str,
    date: str,
    headers: Mapping[str, str],
    resource: str,
) -> str:
    """Return the signature for a request described by its parts."""
    return sign(secret, canonical_string(method, content_type, date, headers, resource))


def authorization_header(access_key_id: str, signature: str) -> str:
    return f"OSS {access_key_id}:{signature}"
