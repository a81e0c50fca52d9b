# pluginforge/session/ingestor.py
"""
Server-sent event ingestion for the generation stream.

Frames look like `data: {"type": "...", "data": {...}}` followed by a blank line.
Each decoded event mutates the session's ProjectFileStore in place; a bad record is
logged and skipped, never fatal to the stream.
"""
import json
import codecs
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional

from pluginforge.models import ProjectData
from pluginforge.utils.file_helpers import split_path

logger = logging.getLogger(__name__)

AUTO_FIX_HINT = "Run auto-fix to resolve the issue"


@dataclass
class IngestResult:
    completed: bool = False
    project: Optional[ProjectData] = None
    events: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def _record_data(record: str) -> Optional[str]:
    lines = []
    for line in record.split("\n"):
        if line.startswith("data:"):
            value = line[5:]
            lines.append(value[1:] if value.startswith(" ") else value)
    return "\n".join(lines) if lines else None


async def iter_sse_data(byte_chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """
    Yield the data payload of every SSE record. Chunk boundaries are arbitrary: a record,
    or a multi-byte character, may be split across any number of reads.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in byte_chunks:
        buffer = (buffer + decoder.decode(chunk)).replace("\r\n", "\n")
        while "\n\n" in buffer:
            record, buffer = buffer.split("\n\n", 1)
            data = _record_data(record)
            if data is not None:
                yield data

    # unterminated last record
    tail = (buffer + decoder.decode(b"", final=True)).replace("\r\n", "\n").strip("\n")
    if tail:
        data = _record_data(tail)
        if data is not None:
            yield data


def _require_str(payload: Dict[str, Any], key: str, allow_empty: bool = False) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or (not allow_empty and not value):
        raise ValueError(f"event field {key!r} missing or not a string")
    return value


class StreamIngestor:
    def __init__(self, session):
        self.session = session
        self._handlers = {
            "init": self._on_init,
            "file_start": self._on_file_start,
            "file_chunk": self._on_file_chunk,
            "file_complete": self._on_file_complete,
            "complete": self._on_complete,
            "error": self._on_error,
        }

    async def ingest(self, byte_chunks: AsyncIterable[bytes]) -> IngestResult:
        """
        Consume the whole stream. Transport errors from `byte_chunks` propagate to the caller;
        malformed records do not.
        """
        result = IngestResult()
        async for data in iter_sse_data(byte_chunks):
            try:
                self.apply(json.loads(data), result)
            except (ValueError, KeyError, TypeError) as e:
                result.skipped += 1
                logger.warning("Failed to parse SSE event: %s (%.120s)", e, data)
                continue
            result.events += 1

        if not result.completed:
            logger.warning("Generation stream ended without a complete event (%d events)", result.events)
        return result

    def apply(self, event: Any, result: Optional[IngestResult] = None):
        if not isinstance(event, dict):
            raise TypeError("event is not an object")
        handler = self._handlers.get(event.get("type"))
        if handler is None:
            raise ValueError(f"unknown event type {event.get('type')!r}")
        payload = event.get("data")
        if not isinstance(payload, dict):
            raise TypeError("event data is not an object")
        handler(payload, result if result is not None else IngestResult())

    # ----------------------------
    # Event handlers
    # ----------------------------
    def _on_init(self, payload: Dict[str, Any], result: IngestResult):
        s = self.session
        current = s.store.project or ProjectData()
        name = _require_str(payload, "project_name")
        s.store.update_info(
            name,
            payload.get("language") or current.language,
            payload.get("platform") or current.platform,
            payload.get("mc_version") or current.mc_version,
        )
        s.console.success(f"Creating project: {name}")

    def _on_file_start(self, payload: Dict[str, Any], result: IngestResult):
        s = self.session
        path = _require_str(payload, "path")
        s.store.start_file(path)
        folder, name = split_path(path)
        if folder:
            s.console.info(f"Creating folder: {folder}")
        s.console.info(f"Writing file: {name}")

    def _on_file_chunk(self, payload: Dict[str, Any], result: IngestResult):
        s = self.session
        path = _require_str(payload, "path")
        chunk = _require_str(payload, "chunk", allow_empty=True)
        f = s.store.append_chunk(path, chunk)
        if s.selected_path is None and f.content:
            s.select(path)

    def _on_file_complete(self, payload: Dict[str, Any], result: IngestResult):
        _, name = split_path(_require_str(payload, "path"))
        self.session.console.success(f"Completed: {name}")

    def _on_complete(self, payload: Dict[str, Any], result: IngestResult):
        s = self.session
        project = ProjectData.model_validate(payload["project"])
        s.editor.discard()
        s.store.replace_all(project)
        s.selected_path = None
        s.select_first()
        s.console.success(f"Generated {len(project.files)} files successfully!")
        result.completed = True
        result.project = project

    def _on_error(self, payload: Dict[str, Any], result: IngestResult):
        s = self.session
        message = payload.get("message") or "Unknown error"
        s.has_error = True
        s.console.error(f"Error detected: {message}")
        s.console.info(AUTO_FIX_HINT)
        result.errors.append(str(message))
