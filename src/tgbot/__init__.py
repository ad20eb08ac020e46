"""Typed Bot API client with a long-poll update dispatcher.

Layers, leaves first:

- `tgbot.multipart`: encodes a parameter mapping (text values and
  `InputFile` attachments) into a `multipart/form-data` body with a fixed
  boundary.
- `tgbot.transport`: one authenticated POST per remote call; decodes the
  `{ok, result | description}` envelope into a result or a `BotApiError`.
- `tgbot.methods`: `BotApi`, the typed method surface (`call()` plus
  snake_case wrappers) over the transport.
- `tgbot.state` / `tgbot.dispatcher`: `UpdateDispatcher` polls `getUpdates`
  one call at a time and notifies listeners per `UpdateKind`.

Design notes / boundaries:
- Polling only; no webhook delivery.
- The offset lives in memory only. A restarted process may see updates that
  were still unacknowledged server-side (at-least-once across restarts,
  exactly-once within one run).
- The token is embedded in request URLs and is never logged.
"""

from __future__ import annotations

from .config import Config
from .dispatcher import ERROR, ListenerError, ListenerRegistry, UpdateDispatcher
from .methods import METHOD_RESULTS, BotApi, decode_updates, serialize_params
from .multipart import BOUNDARY, CONTENT_TYPE, InputFile, encode_multipart
from .state import DispatcherPhase, DispatcherState, transition
from .transport import (
    BotApiDecodeError,
    BotApiError,
    BotApiResponseError,
    BotTransport,
    ResponseEnvelope,
    UpdateDecodeError,
    decode_envelope,
)
from .types import (
    CallbackQuery,
    Chat,
    ChatJoinRequest,
    ChatMemberUpdated,
    InlineQuery,
    Message,
    PreCheckoutQuery,
    ShippingQuery,
    Update,
    UpdateKind,
    User,
)

__all__ = [
    "BOUNDARY",
    "CONTENT_TYPE",
    "ERROR",
    "METHOD_RESULTS",
    "BotApi",
    "BotApiDecodeError",
    "BotApiError",
    "BotApiResponseError",
    "BotTransport",
    "CallbackQuery",
    "Chat",
    "ChatJoinRequest",
    "ChatMemberUpdated",
    "Config",
    "DispatcherPhase",
    "DispatcherState",
    "InlineQuery",
    "InputFile",
    "ListenerError",
    "ListenerRegistry",
    "Message",
    "PreCheckoutQuery",
    "ResponseEnvelope",
    "ShippingQuery",
    "Update",
    "UpdateDecodeError",
    "UpdateDispatcher",
    "UpdateKind",
    "User",
    "decode_envelope",
    "decode_updates",
    "encode_multipart",
    "serialize_params",
    "transition",
]
