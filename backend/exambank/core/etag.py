"""ETag support for cacheable downloads (import templates)."""

import hashlib

from fastapi import Request, status
from fastapi.responses import Response


def compute_etag(content: str | bytes) -> str:
    """Compute ETag from content (weak ETag with W/ prefix)."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    return f'W/"{hashlib.md5(content).hexdigest()}"'


def _bare(etag: str) -> str:
    return etag.strip().removeprefix("W/").strip('"')


def check_if_none_match(request: Request, etag: str) -> bool:
    """
    Check If-None-Match header against computed ETag.

    Returns True if client has a matching ETag (should return 304). A header
    may list several tags, or ``*``.
    """
    if_none_match = request.headers.get("If-None-Match")
    if not if_none_match:
        return False
    if if_none_match.strip() == "*":
        return True
    return _bare(etag) in {_bare(tag) for tag in if_none_match.split(",")}


def cached_download(request: Request, content: str, media_type: str, filename: str) -> Response:
    """Attachment response with ETag, or 304 when the client copy is current."""
    etag = compute_etag(content)
    if check_if_none_match(request, etag):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers={"ETag": etag})
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "ETag": etag,
        },
    )
