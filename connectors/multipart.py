import json
import secrets
from dataclasses import dataclass
from typing import List, Optional, Tuple

from connectors.base import DecodedAttachment, ParameterBag
from connectors.errors import InvalidAttachmentError, InvalidParameterError
from connectors.profiles import ProtocolProfile

CRLF = b"\r\n"


@dataclass
class MultipartBody:
    boundary: str
    content: bytes

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def __len__(self) -> int:
        return len(self.content)


def new_boundary() -> str:
    return f"----DocumentParsingBoundary{secrets.token_hex(16)}"


def _json_list(values) -> str:
    return json.dumps(list(values), separators=(",", ":"))


def scalar_fields(params: ParameterBag, profile: ProtocolProfile) -> List[Tuple[str, str]]:
    """Text form fields for a profile, in wire order."""
    values = {
        "output_formats": _json_list(params.output_formats),
        "base64_encoding": _json_list(params.base64_encoding),
        "ocr": params.ocr,
        "coordinates": "true" if params.coordinates else "false",
        "language": params.language,
        "model": params.model,
    }
    return [(name, values[name]) for name in profile.scalar_fields]


def _quote(value: str) -> str:
    return value.replace("\r", "%0D").replace("\n", "%0A").replace('"', "%22")


def _part_header(name: str, file_name: Optional[str] = None, mime_type: Optional[str] = None) -> bytes:
    disposition = f'Content-Disposition: form-data; name="{_quote(name)}"'
    if file_name is not None:
        disposition += f'; filename="{_quote(file_name)}"'
    lines = [disposition]
    if mime_type:
        lines.append(f"Content-Type: {mime_type}")
    return ("\r\n".join(lines)).encode("utf-8") + CRLF + CRLF


def build_multipart_body(
    params: ParameterBag,
    attachment: DecodedAttachment,
    profile: ProtocolProfile,
    boundary: Optional[str] = None,
) -> MultipartBody:
    if boundary is None:
        boundary = new_boundary()
        while b"--" + boundary.encode("ascii") in attachment.content:
            boundary = new_boundary()
    delimiter = b"--" + boundary.encode("ascii")

    # The delimiter must never occur inside the payload.
    if delimiter in attachment.content:
        raise ValueError(f"Boundary {boundary!r} occurs inside the attachment content")

    chunks: List[bytes] = []
    for name, value in scalar_fields(params, profile):
        try:
            encoded = value.encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidParameterError(name, value) from None
        chunks.extend([delimiter, CRLF, _part_header(name), encoded, CRLF])

    try:
        file_header = _part_header(profile.file_field, attachment.file_name, attachment.mime_type)
    except UnicodeEncodeError:
        raise InvalidAttachmentError(
            attachment.binary_property, "has a file name or MIME type that is not valid UTF-8"
        ) from None

    chunks.extend(
        [
            delimiter,
            CRLF,
            file_header,
            attachment.content,
            CRLF,
        ]
    )
    chunks.extend([delimiter, b"--", CRLF])
    return MultipartBody(boundary=boundary, content=b"".join(chunks))
