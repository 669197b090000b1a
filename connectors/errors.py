from typing import Optional, Sequence


class ConnectorError(Exception):
    """Base class for failures raised while processing one item or attachment."""

    binary_property: Optional[str] = None


class NoAttachmentsError(ConnectorError):
    def __init__(self, message: str = "No binary data found on input item.") -> None:
        super().__init__(message)


class MissingAttachmentError(ConnectorError):
    def __init__(self, binary_property: str) -> None:
        self.binary_property = binary_property
        super().__init__(f'Binary property "{binary_property}" is not present on input item.')


class InvalidAttachmentError(ConnectorError):
    def __init__(self, binary_property: str, reason: str) -> None:
        self.binary_property = binary_property
        self.reason = reason
        super().__init__(f'Binary data "{binary_property}" {reason}.')


class InvalidParameterError(ConnectorError):
    def __init__(self, option: str, value: object, allowed: Sequence[str] = ()) -> None:
        self.option = option
        self.value = value
        self.allowed = tuple(allowed)
        message = f"Invalid value {value!r} for option '{option}'"
        if self.allowed:
            message += f" (expected one of: {', '.join(self.allowed)})"
        super().__init__(message)


class DispatchError(ConnectorError):
    """Raised when the upload could not be completed."""


class TransportError(DispatchError):
    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Could not reach {url}: {reason}")


class RemoteError(DispatchError):
    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        message = f"Request failed with status code {status_code}"
        if body:
            message += f": {body[:200]}"
        super().__init__(message)
