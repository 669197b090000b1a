import base64
import binascii
import time
from typing import Iterator, List, Optional, Tuple

from connectors.base import Attachment, DecodedAttachment, InputItem
from connectors.errors import InvalidAttachmentError, MissingAttachmentError, NoAttachmentsError

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_EXTENSION = "dat"


class AttachmentExtractor:
    """Decodes the binary payloads of input items.

    One extractor is used per batch run so that synthesized filenames stay
    unique across the whole run.
    """

    def __init__(self) -> None:
        self._last_timestamp = 0

    def iter_attachments(
        self, item: InputItem, binary_property: Optional[str] = None
    ) -> Iterator[Tuple[str, Attachment]]:
        if not item.attachments:
            raise NoAttachmentsError()

        if binary_property is not None:
            if binary_property not in item.attachments:
                raise MissingAttachmentError(binary_property)
            yield binary_property, item.attachments[binary_property]
            return

        for name, attachment in item.attachments.items():
            yield name, attachment

    def extract(
        self, item: InputItem, binary_property: Optional[str] = None
    ) -> List[DecodedAttachment]:
        return [
            self.decode_attachment(name, attachment)
            for name, attachment in self.iter_attachments(item, binary_property)
        ]

    def decode_attachment(self, name: str, attachment: Attachment) -> DecodedAttachment:
        content = decode_payload(name, attachment.data)
        file_name = attachment.file_name or self._default_file_name(attachment.file_extension)
        mime_type = attachment.mime_type or DEFAULT_MIME_TYPE
        try:
            file_name.encode("utf-8")
            mime_type.encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidAttachmentError(
                name, "has a file name or MIME type that is not valid UTF-8"
            ) from None
        return DecodedAttachment(
            binary_property=name,
            file_name=file_name,
            mime_type=mime_type,
            content=content,
            original_file_name=attachment.file_name,
        )

    def _default_file_name(self, extension: Optional[str]) -> str:
        suffix = (extension or "").strip().lstrip(".") or DEFAULT_EXTENSION
        return f"upload-{self._next_timestamp()}.{suffix}"

    def _next_timestamp(self) -> int:
        now = time.time_ns() // 1_000_000
        if now <= self._last_timestamp:
            now = self._last_timestamp + 1
        self._last_timestamp = now
        return now


def decode_payload(name: str, data: Optional[str]) -> bytes:
    if data is None:
        raise InvalidAttachmentError(name, 'is missing "data" property')
    if not isinstance(data, (str, bytes)):
        raise InvalidAttachmentError(name, "has a non-text data property")

    if isinstance(data, str):
        compact = "".join(data.split())
        compact += "=" * (-len(compact) % 4)
    else:
        compact = b"".join(data.split())
        compact += b"=" * (-len(compact) % 4)
    try:
        content = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidAttachmentError(name, f"is not valid base64 ({exc})") from exc

    if not content:
        raise InvalidAttachmentError(name, "decoded to zero bytes")
    return content
