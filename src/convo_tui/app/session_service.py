"""Session service: the server calls the engine depends on.

The engine only needs revert/unrevert and a single-message fetch (for
permission previews of tool calls living in child sessions). The HTTP
implementation also covers the initial load and the event stream so the
CLI can run standalone.

All calls block; the app runs them on worker threads.
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterator, Mapping
from typing import Protocol

from convo_tui.app.domain_store import MessageRecord
from convo_tui.core.models import (
    DecodeError,
    MessageInfo,
    Part,
    Session,
    decode_message_info,
    decode_part,
    decode_session,
)

logger = logging.getLogger(__name__)

_TIMEOUT = 30


class SessionServiceError(Exception):
    """A session service call failed (transport, HTTP status, or payload)."""


class SessionService(Protocol):
    def revert(self, session_id: str, message_id: str, part_id: str | None = None) -> Session: ...

    def unrevert(self, session_id: str) -> Session: ...

    def fetch_message(self, session_id: str, message_id: str) -> tuple[MessageInfo, tuple[Part, ...]]: ...

    def prompt(self, session_id: str, message_id: str, text: str) -> None: ...


def decode_message_with_parts(raw) -> MessageRecord:
    """Decode a `{"info": ..., "parts": [...]}` payload.

    Unknown part variants are dropped with a warning; the message survives.
    """
    if not isinstance(raw, Mapping):
        raise SessionServiceError("message payload must be an object")
    info = decode_message_info(raw.get("info"))
    parts: list[Part] = []
    for part_raw in raw.get("parts") or ():
        try:
            parts.append(decode_part(part_raw))
        except DecodeError as exc:
            logger.warning("message %s: dropped part: %s", info.id, exc)
    return MessageRecord(info=info, parts=tuple(parts))


class HttpSessionService:
    """SessionService over the server's REST API (urllib, JSON bodies)."""

    def __init__(self, base_url: str, timeout: float = _TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, *segments: str) -> str:
        return self.base_url + "/" + "/".join(urllib.parse.quote(s, safe="") for s in segments)

    def _request(self, method: str, url: str, body: dict | None = None, wait: bool = False):
        data = json.dumps(body).encode() if body is not None else None
        headers = {"Accept": "application/json"}
        if data is not None:
            headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=None if wait else self.timeout) as resp:
                payload = resp.read()
        except urllib.error.HTTPError as e:
            raise SessionServiceError(f"{method} {url}: HTTP {e.code} {e.reason}") from e
        except (urllib.error.URLError, OSError) as e:
            raise SessionServiceError(f"{method} {url}: {e}") from e
        if not payload:
            return None
        try:
            return json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SessionServiceError(f"{method} {url}: invalid JSON response") from e

    def _session(self, raw) -> Session:
        try:
            return decode_session(raw)
        except DecodeError as e:
            raise SessionServiceError(f"invalid session payload: {e}") from e

    # ─── Engine calls ─────────────────────────────────────────────────

    def revert(self, session_id: str, message_id: str, part_id: str | None = None) -> Session:
        body: dict[str, str] = {"messageID": message_id}
        if part_id:
            body["partID"] = part_id
        raw = self._request("POST", self._url("session", session_id, "revert"), body)
        return self._session(raw)

    def unrevert(self, session_id: str) -> Session:
        raw = self._request("POST", self._url("session", session_id, "unrevert"), {})
        return self._session(raw)

    def fetch_message(self, session_id: str, message_id: str) -> tuple[MessageInfo, tuple[Part, ...]]:
        raw = self._request("GET", self._url("session", session_id, "message", message_id))
        try:
            record = decode_message_with_parts(raw)
        except DecodeError as e:
            raise SessionServiceError(f"invalid message payload: {e}") from e
        return record.info, record.parts

    def prompt(self, session_id: str, message_id: str, text: str) -> None:
        """Send a user message under a client-minted id.

        The server answers once the assistant reply is finished, so this
        call has no timeout. Progress arrives on the event stream.
        """
        body = {"messageID": message_id, "parts": [{"type": "text", "text": text}]}
        self._request("POST", self._url("session", session_id, "message"), body, wait=True)

    # ─── Bootstrap ────────────────────────────────────────────────────

    def get_session(self, session_id: str) -> Session:
        return self._session(self._request("GET", self._url("session", session_id)))

    def list_messages(self, session_id: str) -> list[MessageRecord]:
        raw = self._request("GET", self._url("session", session_id, "message"))
        records: list[MessageRecord] = []
        for item in raw or ():
            try:
                records.append(decode_message_with_parts(item))
            except DecodeError as exc:
                logger.warning("session %s: dropped message: %s", session_id, exc)
        return records

    def iter_events(self) -> Iterator[dict]:
        """Yield JSON payloads from the server-sent event stream at /event.

        Blocks until the server closes the stream.
        """
        req = urllib.request.Request(
            self._url("event"), headers={"Accept": "text/event-stream"}, method="GET"
        )
        try:
            resp = urllib.request.urlopen(req)
        except (urllib.error.URLError, OSError) as e:
            raise SessionServiceError(f"GET /event: {e}") from e
        with resp:
            data_lines: list[str] = []
            for raw_line in resp:
                line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
                if line.startswith("data:"):
                    data_lines.append(line[5:].lstrip())
                    continue
                if line or not data_lines:
                    continue
                chunk = "\n".join(data_lines)
                data_lines = []
                try:
                    payload = json.loads(chunk)
                except json.JSONDecodeError:
                    logger.warning("event stream: skipped non-JSON chunk")
                    continue
                if isinstance(payload, dict):
                    yield payload
