"""Media upload port."""

from typing import Protocol

from skillswap_chat.domain.messages import MessageKind


class MediaStore(Protocol):
    """Stores uploaded files and returns a public URL."""

    async def upload(self, data: bytes, filename: str, content_type: str) -> str:
        """Upload a file and return its delivery URL."""


def kind_for_content_type(content_type: str) -> MessageKind:
    """Map a MIME type to the message kind used to display it."""
    major = content_type.split("/", 1)[0].strip().lower()
    if major == "image":
        return MessageKind.IMAGE
    if major == "video":
        return MessageKind.VIDEO
    return MessageKind.LINK
