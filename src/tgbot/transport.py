"""One authenticated multipart POST per remote Bot API call.

`BotTransport` holds no per-call state: every `request()` builds its own body
and connection, so any number of calls (including a pending long-poll) may be
in flight at once against the same token.

Error contract:
- `ok: false` envelopes raise `BotApiResponseError` whose message is the
  server's `description`.
- A body that is not a JSON envelope raises `BotApiDecodeError`, chained to
  the validation error.
- Network failures (`urllib.error.URLError`, `OSError`, `TimeoutError`)
  propagate unchanged. There are no retries at this layer.
"""

from __future__ import annotations

import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from functools import partial
from logging import getLogger
from typing import Any, Final

import anyio.to_thread as to_thread
from pydantic import BaseModel, ValidationError

from .multipart import CONTENT_TYPE, encode_multipart
from .types import ResponseParameters

logger = getLogger(__name__)

DEFAULT_API_BASE: Final[str] = "https://api.telegram.org"


class BotApiError(RuntimeError):
    """Base class for failures reported by this client."""


class BotApiResponseError(BotApiError):
    """The server answered with `ok: false`."""

    def __init__(
        self,
        description: str,
        *,
        error_code: int | None = None,
        parameters: ResponseParameters | None = None,
    ) -> None:
        super().__init__(description)
        self.description = description
        self.error_code = error_code
        self.parameters = parameters

    @property
    def retry_after(self) -> int | None:
        return self.parameters.retry_after if self.parameters else None


class BotApiDecodeError(BotApiError):
    """The response body could not be decoded as an envelope or result."""


class UpdateDecodeError(BotApiDecodeError):
    """One `getUpdates` entry did not match the `Update` model.

    `update_id` is the entry's id when it carried an integer one, so the
    dispatcher can still acknowledge it.
    """

    def __init__(self, message: str, *, update_id: int | None = None) -> None:
        super().__init__(message)
        self.update_id = update_id


class ResponseEnvelope(BaseModel):
    """The `{ok, result | description}` wrapper every response uses."""

    ok: bool
    result: Any = None
    description: str | None = None
    error_code: int | None = None
    parameters: ResponseParameters | None = None


def decode_envelope(raw: bytes) -> Any:
    """Decode a response body and return its `result`, or raise.

    No result value is returned when `ok` is false.
    """

    try:
        envelope = ResponseEnvelope.model_validate_json(raw)
    except ValidationError as e:
        raise BotApiDecodeError(
            f"invalid response envelope ({e.error_count()} error(s))"
        ) from e

    if not envelope.ok:
        raise BotApiResponseError(
            envelope.description or "request failed without description",
            error_code=envelope.error_code,
            parameters=envelope.parameters,
        )
    return envelope.result


@dataclass(frozen=True, slots=True)
class BotTransport:
    token: str
    api_base: str = DEFAULT_API_BASE
    # Client-side socket timeout. `None` waits as long as the server holds
    # the request open.
    timeout_seconds: float | None = None

    def _method_url(self, method: str) -> str:
        # Never log/print this URL; it embeds the bot token.
        return f"{self.api_base.rstrip('/')}/bot{self.token}/{method}"

    def _request_sync(self, method: str, params: Mapping[str, Any]) -> Any:
        body = encode_multipart(params)
        request = urllib.request.Request(
            self._method_url(method),
            data=body,
            method="POST",
            headers={
                "Content-Type": CONTENT_TYPE,
                "Content-Length": str(len(body)),
            },
        )
        logger.debug(f"bot api request method={method} body_bytes={len(body)}")

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            # Error statuses still carry an envelope with a description.
            with e:
                raw = e.read()
            logger.debug(f"bot api http status={e.code} method={method}")

        return decode_envelope(raw)

    async def request(self, method: str, params: Mapping[str, Any]) -> Any:
        """Run one remote call and return the envelope's `result`.

        The blocking HTTP call runs in a worker thread; cancelling the caller
        abandons the thread rather than waiting for the socket.
        """

        return await to_thread.run_sync(
            partial(self._request_sync, method, dict(params)),
            abandon_on_cancel=True,
        )
