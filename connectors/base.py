from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass
class Attachment:
    """One base64 encoded binary payload carried by an input item."""

    data: Optional[str]
    file_name: Optional[str] = None
    file_extension: Optional[str] = None
    mime_type: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Attachment":
        return cls(
            data=payload.get("data"),
            file_name=payload.get("fileName", payload.get("file_name")) or None,
            file_extension=payload.get("fileExtension", payload.get("file_extension")) or None,
            mime_type=payload.get("mimeType", payload.get("mime_type")) or None,
        )


@dataclass
class InputItem:
    """Unit of batch input: named attachments plus optional per-item options."""

    attachments: Dict[str, Attachment] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InputItem":
        binary = payload.get("binary") or {}
        attachments = {
            str(name): value if isinstance(value, Attachment) else Attachment.from_dict(value)
            for name, value in binary.items()
        }
        return cls(attachments=attachments, options=dict(payload.get("options") or {}))


@dataclass
class DecodedAttachment:
    binary_property: str
    file_name: str
    mime_type: str
    content: bytes
    original_file_name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ParameterBag:
    """Resolved request options for one item, shared by all of its attachments."""

    language: str
    model: str
    output_formats: Tuple[str, ...]
    base64_encoding: Tuple[str, ...]
    ocr: str
    coordinates: bool

    def as_log_fields(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "model": self.model,
            "output_formats": list(self.output_formats),
            "base64_encoding": list(self.base64_encoding),
            "ocr": self.ocr,
            "coordinates": self.coordinates,
        }


@dataclass(frozen=True)
class Credential:
    api_key: str

    def masked(self) -> str:
        if len(self.api_key) <= 4:
            return "****"
        return f"****{self.api_key[-4:]}"

    def __repr__(self) -> str:
        return f"Credential(api_key='{self.masked()}')"


def _printable(value: Optional[str]) -> Optional[str]:
    # Failure records must stay serializable even when the input carried
    # text that is not valid UTF-8.
    if value is None:
        return None
    return value.encode("utf-8", "replace").decode("utf-8")


@dataclass(frozen=True)
class ResultRecord:
    """One unit of pipeline output, a success or a failure."""

    success: bool
    item_index: int
    binary_property: Optional[str] = None
    file: Optional[str] = None
    result: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def succeeded(
        cls, item_index: int, attachment: DecodedAttachment, result: Any
    ) -> "ResultRecord":
        return cls(
            success=True,
            item_index=item_index,
            binary_property=attachment.binary_property,
            file=attachment.original_file_name or attachment.file_name,
            result=result,
        )

    @classmethod
    def failed(
        cls,
        item_index: int,
        exc: Exception,
        binary_property: Optional[str] = None,
        file: Optional[str] = None,
    ) -> "ResultRecord":
        return cls(
            success=False,
            item_index=item_index,
            binary_property=_printable(binary_property),
            file=_printable(file),
            error=_printable(str(exc)),
            error_type=type(exc).__name__,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success, "item_index": self.item_index}
        if self.binary_property is not None:
            payload["binary_property"] = self.binary_property
        if self.file is not None:
            payload["file"] = self.file
        if self.success:
            payload["result"] = self.result
        else:
            payload["error"] = self.error
            payload["error_type"] = self.error_type
        return payload


class BaseConnector:
    """Interface for connectors that turn input items into result records."""

    async def parse_uploads(self, *args, **kwargs):  # pragma: no cover - interface placeholder
        raise NotImplementedError
