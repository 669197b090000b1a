import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from connectors.base import Credential
from connectors.errors import RemoteError, TransportError
from connectors.multipart import MultipartBody
from connectors.profiles import ProtocolProfile


class UploadDispatcher:
    """Posts one multipart body at a time to a document parsing endpoint.

    There are no retries. A failed upload raises and the caller decides how to
    recover.
    """

    def __init__(
        self,
        profile: ProtocolProfile,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.profile = profile
        self.url = profile.url
        self.timeout = timeout
        self.transport = transport
        self.diagnostics: List[Dict[str, object]] = []
        self.logger = logging.getLogger(__name__)

    def create_client(self) -> httpx.AsyncClient:
        options: Dict[str, Any] = {"headers": {"Accept": "application/json"}}
        if self.timeout is not None:
            options["timeout"] = httpx.Timeout(self.timeout)
        if self.transport is not None:
            options["transport"] = self.transport
        return httpx.AsyncClient(**options)

    def build_headers(self, body: MultipartBody, credential: Credential) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.api_key}",
            "Content-Type": body.content_type,
        }

    def _record_diagnostic(
        self,
        *,
        status: str,
        content_type: str,
        request_bytes: int,
        response_bytes: int,
        elapsed_ms: int,
        reason: str,
    ) -> None:
        self.diagnostics.append(
            {
                "url": self.url,
                "status": status,
                "content_type": content_type,
                "request_bytes": request_bytes,
                "response_bytes": response_bytes,
                "elapsed_ms": elapsed_ms,
                "reason": reason,
            }
        )

    async def dispatch(
        self, client: httpx.AsyncClient, body: MultipartBody, credential: Credential
    ) -> Any:
        start_time = time.monotonic()
        try:
            response = await client.post(
                self.url,
                content=body.content,
                headers=self.build_headers(body, credential),
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            reason = "timeout" if isinstance(exc, httpx.TimeoutException) else "transport-error"
            self._record_diagnostic(
                status="",
                content_type="",
                request_bytes=len(body),
                response_bytes=0,
                elapsed_ms=elapsed_ms,
                reason=reason,
            )
            self.logger.warning("Upload to %s failed: %s", self.url, exc)
            raise TransportError(self.url, str(exc) or type(exc).__name__) from exc

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        content_type = response.headers.get("content-type", "")
        status_code = response.status_code

        if not response.is_success:
            self._record_diagnostic(
                status=str(status_code),
                content_type=content_type,
                request_bytes=len(body),
                response_bytes=len(response.content or b""),
                elapsed_ms=elapsed_ms,
                reason="http-error",
            )
            self.logger.warning("Upload to %s returned %s", self.url, status_code)
            raise RemoteError(status_code, response.text)

        self._record_diagnostic(
            status=str(status_code),
            content_type=content_type,
            request_bytes=len(body),
            response_bytes=len(response.content or b""),
            elapsed_ms=elapsed_ms,
            reason="ok",
        )
        return self._decode_response(response)

    @staticmethod
    def _decode_response(response: httpx.Response) -> Any:
        if not response.content:
            return None
        if "json" in response.headers.get("content-type", "").lower():
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text
