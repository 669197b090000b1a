import asyncio

import httpx
import pytest

from connectors.base import Credential
from connectors.errors import RemoteError, TransportError
from connectors.multipart import MultipartBody
from connectors.profiles import DOCUMENT_PARSE, get_profile
from uploader import UploadDispatcher

BODY = MultipartBody(boundary="B", content=b"--B\r\nbody\r\n--B--\r\n")
CREDENTIAL = Credential(api_key="up_secret_key_1234")


def _dispatch(handler):
    dispatcher = UploadDispatcher(get_profile(DOCUMENT_PARSE), transport=httpx.MockTransport(handler))

    async def _run():
        async with dispatcher.create_client() as client:
            return await dispatcher.dispatch(client, BODY, CREDENTIAL)

    return dispatcher, asyncio.run(_run())


def test_successful_upload_returns_json_and_sends_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["method"] = request.method
        seen["authorization"] = request.headers["authorization"]
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"content": {"text": "hello"}})

    dispatcher, result = _dispatch(handler)

    assert result == {"content": {"text": "hello"}}
    assert seen["url"] == "https://api.upstage.ai/v1/document-digitization"
    assert seen["method"] == "POST"
    assert seen["authorization"] == "Bearer up_secret_key_1234"
    assert seen["content_type"] == "multipart/form-data; boundary=B"
    assert seen["body"] == BODY.content
    assert dispatcher.diagnostics[-1]["reason"] == "ok"


def test_non_json_response_is_returned_as_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="plain result", headers={"content-type": "text/plain"})

    _, result = _dispatch(handler)
    assert result == "plain result"


def test_http_error_status_raises_remote_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

    dispatcher = UploadDispatcher(get_profile(DOCUMENT_PARSE), transport=httpx.MockTransport(handler))

    async def _run():
        async with dispatcher.create_client() as client:
            await dispatcher.dispatch(client, BODY, CREDENTIAL)

    with pytest.raises(RemoteError) as excinfo:
        asyncio.run(_run())

    assert excinfo.value.status_code == 401
    assert "Invalid API key" in excinfo.value.body
    assert "401" in str(excinfo.value)
    assert dispatcher.diagnostics[-1]["reason"] == "http-error"


def test_network_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = UploadDispatcher(get_profile(DOCUMENT_PARSE), transport=httpx.MockTransport(handler))

    async def _run():
        async with dispatcher.create_client() as client:
            await dispatcher.dispatch(client, BODY, CREDENTIAL)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(_run())

    assert "connection refused" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert dispatcher.diagnostics[-1]["reason"] == "transport-error"


def test_credential_is_masked_in_repr():
    assert "1234" in repr(CREDENTIAL)
    assert "up_secret" not in repr(CREDENTIAL)
    assert Credential(api_key="abc").masked() == "****"
