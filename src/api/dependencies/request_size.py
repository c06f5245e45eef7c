"""
Request body size guard.
"""

from fastapi import Request

from src.story.constants import MAX_REQUEST_SIZE
from src.story.errors import RequestTooLargeError, ValidationError


async def limit_request_size(request: Request) -> None:
    """Reject bodies whose declared Content-Length exceeds MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length is None:
        return
    try:
        size = int(content_length)
    except ValueError:
        raise ValidationError("Invalid Content-Length header", field="content-length")
    if size > MAX_REQUEST_SIZE:
        raise RequestTooLargeError()
