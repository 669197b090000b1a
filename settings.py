import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env before any os.getenv() calls in dataclass defaults
_ENV_PATH = Path(__file__).parent / ".env"
load_dotenv(_ENV_PATH)


def _optional_float(raw_value: Optional[str]) -> Optional[float]:
    if raw_value is None or not raw_value.strip():
        return None
    try:
        return float(raw_value)
    except ValueError:
        return None


@dataclass
class Settings:
    api_key: str = field(default_factory=lambda: os.getenv("UPSTAGE_API_KEY", ""))
    profile: str = field(default_factory=lambda: os.getenv("UPSTAGE_PROFILE", "document-parse"))
    document_parse_url: str = field(default_factory=lambda: os.getenv("UPSTAGE_DOCUMENT_PARSE_URL", ""))
    legacy_url: str = field(default_factory=lambda: os.getenv("UPSTAGE_LEGACY_URL", ""))
    # Unset means the HTTP client default applies.
    request_timeout: Optional[float] = field(
        default_factory=lambda: _optional_float(os.getenv("UPSTAGE_REQUEST_TIMEOUT"))
    )
    continue_on_fail: bool = field(
        default_factory=lambda: os.getenv("CONNECTOR_CONTINUE_ON_FAIL", "false").lower() == "true"
    )

    def url_for(self, profile_name: str) -> Optional[str]:
        if profile_name == "legacy":
            return self.legacy_url or None
        return self.document_parse_url or None


# Global settings instance
settings = Settings()
