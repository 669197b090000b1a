import base64
import logging
import subprocess
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, File, Form, HTTPException, Request, UploadFile

from connectors.base import Attachment, Credential, InputItem, ResultRecord
from connectors.document_parser import DocumentParsingConnector
from connectors.errors import (
    ConnectorError,
    DispatchError,
    RemoteError,
)
from connectors.events import LoggingEventSink, RecordingEventSink
from connectors.parameters import parse_bool_field, parse_list_field
from connectors.profiles import get_profile
from settings import settings
from uploader import UploadDispatcher

BUILD_TIME = datetime.utcnow().isoformat() + "Z"
MAX_ITEMS = 500


def _detect_git_sha() -> str:
    try:
        output = subprocess.check_output(
            [
                "git",
                "rev-parse",
                "--short",
                "HEAD",
            ],
            stderr=subprocess.DEVNULL,
        )
        return output.decode().strip() or "unknown"
    except Exception:
        return "unknown"


GIT_SHA = _detect_git_sha()

app = FastAPI(title="Document-Parsing-Connector")


last_run_info: Dict[str, Any] = {
    "summary": {},
    "events": [],
    "diagnostics": [],
}


@app.get("/healthz")
async def healthcheck():
    return {"status": "ok"}


@app.get("/version")
async def version():
    return {
        "app": "Document-Parsing-Connector",
        "git_sha": GIT_SHA,
        "build_time": BUILD_TIME,
    }


@app.get("/debug/last-run")
async def debug_last_run():
    return {
        "summary": last_run_info.get("summary", {}),
        "events": last_run_info.get("events", []),
        "diagnostics": last_run_info.get("diagnostics", []),
    }


def _create_dispatcher(profile) -> UploadDispatcher:
    return UploadDispatcher(profile, timeout=settings.request_timeout)


def _credential_source(request: Request):
    async def _resolve() -> Credential:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return Credential(api_key=token.strip())
        if settings.api_key:
            return Credential(api_key=settings.api_key)
        raise HTTPException(status_code=401, detail="Upstage API key is not configured.")

    return _resolve


def _resolve_profile(name: Optional[str]):
    profile_name = (name or settings.profile or "").strip().lower() or None
    try:
        profile = get_profile(profile_name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    return profile.with_url(settings.url_for(profile.name))


def _parse_items(raw_items: Any) -> List[InputItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise HTTPException(status_code=400, detail="At least one item is required.")
    if len(raw_items) > MAX_ITEMS:
        raise HTTPException(status_code=400, detail=f"Provide {MAX_ITEMS} items or fewer.")

    items: List[InputItem] = []
    for idx, raw_item in enumerate(raw_items):
        if not isinstance(raw_item, dict):
            raise HTTPException(status_code=400, detail=f"Item {idx} must be an object.")
        binary = raw_item.get("binary") or {}
        if not isinstance(binary, dict) or not all(isinstance(v, dict) for v in binary.values()):
            raise HTTPException(status_code=400, detail=f"Item {idx} has a malformed 'binary' field.")
        if not isinstance(raw_item.get("options") or {}, dict):
            raise HTTPException(status_code=400, detail=f"Item {idx} has a malformed 'options' field.")
        items.append(InputItem.from_dict(raw_item))
    return items


def _http_error(exc: ConnectorError) -> HTTPException:
    if isinstance(exc, RemoteError):
        return HTTPException(
            status_code=502,
            detail={
                "message": str(exc),
                "remote_status": exc.status_code,
                "remote_body": exc.body[:2000],
            },
        )
    if isinstance(exc, DispatchError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


async def _run_connector(
    request: Request,
    items: List[InputItem],
    *,
    profile_name: Optional[str],
    options: Dict[str, Any],
    continue_on_fail: bool,
    binary_property: Optional[str],
) -> Dict[str, Any]:
    profile = _resolve_profile(profile_name)
    dispatcher = _create_dispatcher(profile)
    events = RecordingEventSink(inner=LoggingEventSink())
    connector = DocumentParsingConnector(
        profile,
        declared_options=options,
        continue_on_fail=continue_on_fail,
        binary_property=binary_property,
        dispatcher=dispatcher,
        events=events,
    )

    try:
        records: List[ResultRecord] = await connector.parse_items(items, _credential_source(request))
    except ConnectorError as exc:
        raise _http_error(exc) from exc
    finally:
        last_run_info.update(
            {
                "summary": dict(connector.last_run),
                "events": list(events.events),
                "diagnostics": list(dispatcher.diagnostics),
            }
        )

    return {"results": [record.to_dict() for record in records], "count": len(records)}


@app.post("/parse")
async def parse_batch(request: Request, payload=Body(...)):
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object.")

    items = _parse_items(payload.get("items"))
    options = payload.get("options") or {}
    if not isinstance(options, dict):
        raise HTTPException(status_code=400, detail="'options' must be an object.")

    continue_on_fail = parse_bool_field(payload.get("continue_on_fail"), settings.continue_on_fail)
    if continue_on_fail is None:
        raise HTTPException(status_code=400, detail="'continue_on_fail' must be a boolean.")

    return await _run_connector(
        request,
        items,
        profile_name=payload.get("profile"),
        options=options,
        continue_on_fail=continue_on_fail,
        binary_property=payload.get("binary_property") or None,
    )


@app.post("/parse/upload")
async def parse_upload(
    request: Request,
    files: List[UploadFile] = File(...),
    profile: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
    model: Optional[str] = Form(None),
    output_formats: Optional[str] = Form(None),
    base64_encoding: Optional[str] = Form(None),
    ocr: Optional[str] = Form(None),
    coordinates: Optional[str] = Form(None),
    continue_on_fail: Optional[str] = Form(None),
):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded.")

    attachments: Dict[str, Attachment] = {}
    for idx, upload in enumerate(files):
        raw_bytes = await upload.read()
        name = "file" if idx == 0 else f"file_{idx}"
        attachments[name] = Attachment(
            data=base64.b64encode(raw_bytes).decode("ascii"),
            file_name=upload.filename or None,
            mime_type=upload.content_type or None,
        )

    options: Dict[str, Any] = {}
    if language is not None:
        options["language"] = language
    if model is not None:
        options["model"] = model
    if output_formats is not None:
        options["output_formats"] = parse_list_field(output_formats)
    if base64_encoding is not None:
        options["base64_encoding"] = parse_list_field(base64_encoding)
    if ocr is not None:
        options["ocr"] = ocr
    if coordinates is not None:
        options["coordinates"] = coordinates

    continue_flag = parse_bool_field(continue_on_fail, settings.continue_on_fail)
    if continue_flag is None:
        raise HTTPException(status_code=400, detail="'continue_on_fail' must be a boolean.")

    return await _run_connector(
        request,
        [InputItem(attachments=attachments)],
        profile_name=profile,
        options=options,
        continue_on_fail=continue_flag,
        binary_property=None,
    )


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(levelname)-5s %(name)s %(message)s")
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
