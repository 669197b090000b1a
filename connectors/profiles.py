from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

DOCUMENT_PARSE = "document-parse"
LEGACY = "legacy"

DEFAULT_MODEL = "document-parse"

LANGUAGES = ("ko", "en")
OUTPUT_FORMATS = ("text", "html", "json", "markdown")
BASE64_ENCODINGS = ("table",)
OCR_MODES = ("auto", "true", "false")


@dataclass(frozen=True)
class ProtocolProfile:
    """Endpoint contract: target URL, form field set and option defaults."""

    name: str
    url: str
    file_field: str
    scalar_fields: tuple
    defaults: Dict[str, Any] = field(default_factory=dict)

    def with_url(self, url: Optional[str]) -> "ProtocolProfile":
        if not url:
            return self
        return replace(self, url=url)


PROFILES: Dict[str, ProtocolProfile] = {
    DOCUMENT_PARSE: ProtocolProfile(
        name=DOCUMENT_PARSE,
        url="https://api.upstage.ai/v1/document-digitization",
        file_field="document",
        scalar_fields=(
            "output_formats",
            "base64_encoding",
            "ocr",
            "coordinates",
            "language",
            "model",
        ),
        defaults={
            "language": "en",
            "model": DEFAULT_MODEL,
            "output_formats": ["html", "text"],
            "base64_encoding": ["table"],
            "ocr": "auto",
            "coordinates": True,
        },
    ),
    LEGACY: ProtocolProfile(
        name=LEGACY,
        url="https://console.upstage.ai/api/document-digitization/document-parsing",
        file_field="file",
        scalar_fields=("language",),
        defaults={
            "language": "ko",
            "model": DEFAULT_MODEL,
            "output_formats": ["text"],
            "base64_encoding": [],
            "ocr": "auto",
            "coordinates": True,
        },
    ),
}


def get_profile(name: Optional[str], url: Optional[str] = None) -> ProtocolProfile:
    normalized = (name or DOCUMENT_PARSE).strip().lower()
    try:
        profile = PROFILES[normalized]
    except KeyError:
        raise ValueError(
            f"Unknown protocol profile '{name}' (expected one of: {', '.join(PROFILES)})"
        ) from None
    return profile.with_url(url)
