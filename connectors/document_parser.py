import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

import httpx

from connectors.attachments import AttachmentExtractor
from connectors.base import (
    Attachment,
    BaseConnector,
    Credential,
    InputItem,
    ParameterBag,
    ResultRecord,
)
from connectors.events import EventSink, LoggingEventSink
from connectors.multipart import build_multipart_body
from connectors.parameters import ParameterResolver
from connectors.profiles import DOCUMENT_PARSE, ProtocolProfile, get_profile
from uploader import UploadDispatcher

CredentialSource = Union[Credential, Callable[[], Awaitable[Credential]]]


class DocumentParsingConnector(BaseConnector):
    """Uploads every attachment of every item to the document parsing endpoint.

    Items are processed in input order and attachments in their enumeration
    order, one upload at a time. With ``continue_on_fail`` a failing
    attachment (or an item without attachments) becomes a failure record;
    otherwise the error is re-raised and the run stops.
    """

    def __init__(
        self,
        profile: Optional[ProtocolProfile] = None,
        *,
        declared_options: Optional[Mapping[str, Any]] = None,
        continue_on_fail: bool = False,
        binary_property: Optional[str] = None,
        dispatcher: Optional[UploadDispatcher] = None,
        events: Optional[EventSink] = None,
    ) -> None:
        self.profile = profile or get_profile(DOCUMENT_PARSE)
        self.resolver = ParameterResolver(self.profile, declared_options)
        self.continue_on_fail = continue_on_fail
        self.binary_property = binary_property
        self.dispatcher = dispatcher or UploadDispatcher(self.profile)
        self.events = events or LoggingEventSink()
        self.last_run: Dict[str, Any] = {}

    async def parse_uploads(self, items: Iterable[InputItem], credentials: CredentialSource) -> List[ResultRecord]:
        return await self.parse_items(items, credentials)

    async def parse_items(
        self, items: Iterable[InputItem], credentials: CredentialSource
    ) -> List[ResultRecord]:
        items = list(items)
        credential = await self._resolve_credential(credentials)
        extractor = AttachmentExtractor()
        results: List[ResultRecord] = []
        self.last_run = {"items": len(items), "results": 0, "succeeded": 0, "failed": 0, "error": None}

        self.events.emit(
            logging.INFO,
            "batch.start",
            items=len(items),
            profile=self.profile.name,
            url=self.profile.url,
            credential=credential.masked(),
            continue_on_fail=self.continue_on_fail,
        )

        try:
            async with self.dispatcher.create_client() as client:
                for index, item in enumerate(items):
                    await self._process_item(client, extractor, credential, index, item, results)
        except Exception as exc:
            self.last_run["error"] = str(exc)
            self.events.emit(logging.ERROR, "batch.aborted", item_results=len(results), error=str(exc))
            raise
        finally:
            self._summarize(results)

        self.events.emit(
            logging.INFO,
            "batch.end",
            results=len(results),
            succeeded=self.last_run["succeeded"],
            failed=self.last_run["failed"],
        )
        return results

    async def _resolve_credential(self, credentials: CredentialSource) -> Credential:
        if isinstance(credentials, Credential):
            return credentials
        credential = credentials()
        if inspect.isawaitable(credential):
            credential = await credential
        return credential

    async def _process_item(
        self,
        client: httpx.AsyncClient,
        extractor: AttachmentExtractor,
        credential: Credential,
        index: int,
        item: InputItem,
        results: List[ResultRecord],
    ) -> None:
        try:
            attachments = list(extractor.iter_attachments(item, self.binary_property))
            params = self.resolver.resolve(index, item)
        except Exception as exc:
            binary_property = getattr(exc, "binary_property", None)
            self.events.emit(
                logging.WARNING,
                "item.failure",
                item_index=index,
                binary_property=binary_property,
                error=str(exc),
            )
            if not self.continue_on_fail:
                raise
            results.append(ResultRecord.failed(index, exc, binary_property=binary_property))
            return

        for name, attachment in attachments:
            record = await self._process_attachment(
                client, extractor, credential, index, name, attachment, params
            )
            results.append(record)

    async def _process_attachment(
        self,
        client: httpx.AsyncClient,
        extractor: AttachmentExtractor,
        credential: Credential,
        index: int,
        name: str,
        attachment: Attachment,
        params: ParameterBag,
    ) -> ResultRecord:
        try:
            decoded = extractor.decode_attachment(name, attachment)
            self.events.emit(
                logging.INFO,
                "file.start",
                item_index=index,
                binary_property=name,
                file_name=decoded.file_name,
                mime_type=decoded.mime_type,
                size=decoded.size,
                **params.as_log_fields(),
            )
            body = build_multipart_body(params, decoded, self.profile)
            response = await self.dispatcher.dispatch(client, body, credential)
        except Exception as exc:
            record = ResultRecord.failed(index, exc, binary_property=name, file=attachment.file_name)
            self.events.emit(
                logging.WARNING,
                "file.failure",
                item_index=index,
                binary_property=name,
                file_name=record.file,
                error=record.error,
                error_type=record.error_type,
            )
            if not self.continue_on_fail:
                raise
            return record

        self.events.emit(
            logging.INFO,
            "file.success",
            item_index=index,
            binary_property=name,
            file_name=decoded.file_name,
        )
        return ResultRecord.succeeded(index, decoded, response)

    def _summarize(self, results: List[ResultRecord]) -> None:
        succeeded = sum(1 for record in results if record.success)
        self.last_run.update(
            {
                "results": len(results),
                "succeeded": succeeded,
                "failed": len(results) - succeeded,
            }
        )
