import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from connectors.base import InputItem, ParameterBag
from connectors.errors import InvalidParameterError
from connectors.profiles import (
    BASE64_ENCODINGS,
    LANGUAGES,
    OCR_MODES,
    OUTPUT_FORMATS,
    ProtocolProfile,
)

OPTION_ALIASES = {
    "outputFormats": "output_formats",
    "base64Encoding": "base64_encoding",
    "includeCoordinates": "coordinates",
}


def normalize_options(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not raw:
        return {}
    return {OPTION_ALIASES.get(key, key): value for key, value in raw.items()}


def parse_list_field(raw_value: Any) -> List[str]:
    if raw_value is None:
        return []
    if isinstance(raw_value, (list, tuple, set)):
        return [str(item).strip().lower() for item in raw_value if str(item).strip()]
    parts = re.split(r"[,\s]+", str(raw_value).strip().strip("[]"))
    return [part.strip().strip("\"'").lower() for part in parts if part.strip().strip("\"'")]


def parse_bool_field(value: Any, default: bool) -> Optional[bool]:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return None


class ParameterResolver:
    """Resolves item options, then run-wide options, then profile defaults."""

    def __init__(
        self, profile: ProtocolProfile, declared: Optional[Mapping[str, Any]] = None
    ) -> None:
        self.profile = profile
        self.declared = normalize_options(declared)

    def resolve(self, index: int, item: Optional[InputItem] = None) -> ParameterBag:
        overrides = normalize_options(item.options if item is not None else None)

        def lookup(name: str) -> Any:
            value = overrides.get(name)
            if value is None:
                value = self.declared.get(name)
            if value is None:
                value = self.profile.defaults.get(name)
            return value

        return ParameterBag(
            language=self._choice("language", lookup("language"), LANGUAGES),
            model=self._model(lookup("model")),
            output_formats=self._multi_choice("output_formats", lookup("output_formats"), OUTPUT_FORMATS),
            base64_encoding=self._multi_choice(
                "base64_encoding", lookup("base64_encoding"), BASE64_ENCODINGS
            ),
            ocr=self._ocr(lookup("ocr")),
            coordinates=self._bool("coordinates", lookup("coordinates"), True),
        )

    @staticmethod
    def _choice(option: str, value: Any, allowed: Sequence[str]) -> str:
        normalized = str(value).strip().lower() if value is not None else ""
        if normalized not in allowed:
            raise InvalidParameterError(option, value, allowed)
        return normalized

    @staticmethod
    def _multi_choice(option: str, value: Any, allowed: Sequence[str]) -> Tuple[str, ...]:
        values: List[str] = []
        for entry in parse_list_field(value):
            if entry not in allowed:
                raise InvalidParameterError(option, entry, allowed)
            if entry not in values:
                values.append(entry)
        return tuple(values)

    def _ocr(self, value: Any) -> str:
        if isinstance(value, bool):
            value = "true" if value else "false"
        return self._choice("ocr", value, OCR_MODES)

    @staticmethod
    def _bool(option: str, value: Any, default: bool) -> bool:
        parsed = parse_bool_field(value, default)
        if parsed is None:
            raise InvalidParameterError(option, value, ("true", "false"))
        return parsed

    @staticmethod
    def _model(value: Any) -> str:
        model = str(value).strip() if value is not None else ""
        if not model:
            raise InvalidParameterError("model", value)
        return model
