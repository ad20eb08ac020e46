"""Typed method surface over `BotTransport`.

Remote operations are described by a flat table (`METHOD_RESULTS`) mapping the
operation name to its result shape. `BotApi.call()` is the single generic
"invoke remote operation" path; the snake_case wrappers are thin keyword-only
call-throughs that exist for discoverability and static typing.

Parameters are not validated client-side: the server is the source of truth
and reports a missing or malformed parameter as an `ok: false` envelope.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from functools import cache
from typing import Any, Final, cast

from pydantic import BaseModel, TypeAdapter, ValidationError

from .multipart import InputFile
from .transport import (
    DEFAULT_API_BASE,
    BotApiDecodeError,
    BotTransport,
    UpdateDecodeError,
)
from .types import (
    BotCommand,
    Chat,
    ChatMember,
    File,
    Message,
    Poll,
    Update,
    User,
    UserProfilePhotos,
    WebhookInfo,
)

_MESSAGE_OR_TRUE: Final[Any] = Message | bool

METHOD_RESULTS: Final[Mapping[str, Any]] = {
    # Entries are validated one by one in `decode_updates`.
    "getUpdates": list[dict[str, Any]],
    "setWebhook": bool,
    "deleteWebhook": bool,
    "getWebhookInfo": WebhookInfo,
    "getMe": User,
    "sendMessage": Message,
    "forwardMessage": Message,
    "copyMessage": dict[str, Any],
    "sendPhoto": Message,
    "sendAudio": Message,
    "sendDocument": Message,
    "sendVideo": Message,
    "sendAnimation": Message,
    "sendVoice": Message,
    "sendVideoNote": Message,
    "sendMediaGroup": list[Message],
    "sendLocation": Message,
    "editMessageLiveLocation": _MESSAGE_OR_TRUE,
    "stopMessageLiveLocation": _MESSAGE_OR_TRUE,
    "sendVenue": Message,
    "sendContact": Message,
    "sendPoll": Message,
    "sendDice": Message,
    "stopPoll": Poll,
    "sendChatAction": bool,
    "getUserProfilePhotos": UserProfilePhotos,
    "getFile": File,
    "kickChatMember": bool,
    "banChatMember": bool,
    "unbanChatMember": bool,
    "restrictChatMember": bool,
    "promoteChatMember": bool,
    "approveChatJoinRequest": bool,
    "declineChatJoinRequest": bool,
    "exportChatInviteLink": str,
    "setChatPhoto": bool,
    "deleteChatPhoto": bool,
    "setChatTitle": bool,
    "setChatDescription": bool,
    "pinChatMessage": bool,
    "unpinChatMessage": bool,
    "leaveChat": bool,
    "getChat": Chat,
    "getChatAdministrators": list[ChatMember],
    "getChatMembersCount": int,
    "getChatMemberCount": int,
    "getChatMember": ChatMember,
    "setChatStickerSet": bool,
    "deleteChatStickerSet": bool,
    "answerCallbackQuery": bool,
    "editMessageText": _MESSAGE_OR_TRUE,
    "editMessageCaption": _MESSAGE_OR_TRUE,
    "editMessageMedia": _MESSAGE_OR_TRUE,
    "editMessageReplyMarkup": _MESSAGE_OR_TRUE,
    "deleteMessage": bool,
    "sendSticker": Message,
    "getStickerSet": dict[str, Any],
    "uploadStickerFile": File,
    "createNewStickerSet": bool,
    "addStickerToSet": bool,
    "setStickerPositionInSet": bool,
    "deleteStickerFromSet": bool,
    "answerInlineQuery": bool,
    "sendInvoice": Message,
    "answerShippingQuery": bool,
    "answerPreCheckoutQuery": bool,
    "setPassportDataErrors": bool,
    "sendGame": Message,
    "setGameScore": _MESSAGE_OR_TRUE,
    "getGameHighScores": list[dict[str, Any]],
    "setMyCommands": bool,
    "getMyCommands": list[BotCommand],
    "deleteMyCommands": bool,
}

_PASSTHROUGH_TYPES: Final[tuple[type, ...]] = (
    InputFile,
    str,
    bytes,
    int,
    float,
    bool,
)


@cache
def _result_adapter(method: str) -> TypeAdapter[Any]:
    return TypeAdapter(METHOD_RESULTS[method])


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def serialize_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Prepare keyword parameters for `BotTransport.request`.

    - `None` means "not set" and is dropped.
    - Structured values (mappings, sequences, models) are JSON-encoded.
    - Scalars, raw `bytes` and `InputFile` are left for the multipart encoder.
    """

    out: dict[str, Any] = {}
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, _PASSTHROUGH_TYPES):
            out[name] = value
        else:
            out[name] = json.dumps(
                _jsonable(value), ensure_ascii=False, separators=(",", ":")
            )
    return out


def decode_updates(
    entries: Sequence[Mapping[str, Any]],
) -> list[Update | UpdateDecodeError]:
    """Validate `getUpdates` entries one at a time.

    An entry the `Update` model rejects is returned as an `UpdateDecodeError`
    in its place, so the rest of the batch is still delivered.
    """

    decoded: list[Update | UpdateDecodeError] = []
    for entry in entries:
        try:
            decoded.append(Update.model_validate(entry))
        except ValidationError as e:
            update_id = entry.get("update_id")
            if not isinstance(update_id, int) or isinstance(update_id, bool):
                update_id = None
            error = UpdateDecodeError(
                f"malformed update update_id={update_id} ({e.error_count()} error(s))",
                update_id=update_id,
            )
            error.__cause__ = e
            decoded.append(error)
    return decoded


class BotApi:
    """Bot API methods bound to one token."""

    def __init__(self, transport: BotTransport) -> None:
        self.transport = transport

    @classmethod
    def from_token(
        cls,
        token: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout_seconds: float | None = None,
    ) -> BotApi:
        return cls(
            BotTransport(token=token, api_base=api_base, timeout_seconds=timeout_seconds)
        )

    async def call(self, method: str, /, **params: Any) -> Any:
        """Invoke `method` and validate its result against `METHOD_RESULTS`.

        Operations missing from the table return the raw decoded result.
        """

        result = await self.transport.request(method, serialize_params(params))
        if method not in METHOD_RESULTS:
            return result
        try:
            return _result_adapter(method).validate_python(result)
        except ValidationError as e:
            raise BotApiDecodeError(f"unexpected {method} result shape") from e

    # -- updates -----------------------------------------------------------

    async def get_updates(
        self,
        *,
        offset: int | None = None,
        timeout: int | None = None,
        limit: int | None = None,
        allowed_updates: Sequence[str] | None = None,
    ) -> list[Update | UpdateDecodeError]:
        entries = await self.call(
            "getUpdates",
            offset=offset,
            timeout=timeout,
            limit=limit,
            allowed_updates=list(allowed_updates)
            if allowed_updates is not None
            else None,
        )
        return decode_updates(entries)

    async def delete_webhook(self, *, drop_pending_updates: bool | None = None) -> bool:
        return cast(
            bool,
            await self.call("deleteWebhook", drop_pending_updates=drop_pending_updates),
        )

    async def get_webhook_info(self) -> WebhookInfo:
        return cast(WebhookInfo, await self.call("getWebhookInfo"))

    async def get_me(self) -> User:
        return cast(User, await self.call("getMe"))

    # -- sending -----------------------------------------------------------

    async def send_message(
        self,
        *,
        chat_id: int | str,
        text: str,
        parse_mode: str | None = None,
        reply_to_message_id: int | None = None,
        message_thread_id: int | None = None,
        disable_notification: bool | None = None,
        reply_markup: Mapping[str, Any] | BaseModel | None = None,
    ) -> Message:
        return cast(
            Message,
            await self.call(
                "sendMessage",
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_to_message_id=reply_to_message_id,
                message_thread_id=message_thread_id,
                disable_notification=disable_notification,
                reply_markup=reply_markup,
            ),
        )

    async def forward_message(
        self,
        *,
        chat_id: int | str,
        from_chat_id: int | str,
        message_id: int,
        disable_notification: bool | None = None,
    ) -> Message:
        return cast(
            Message,
            await self.call(
                "forwardMessage",
                chat_id=chat_id,
                from_chat_id=from_chat_id,
                message_id=message_id,
                disable_notification=disable_notification,
            ),
        )

    async def copy_message(
        self,
        *,
        chat_id: int | str,
        from_chat_id: int | str,
        message_id: int,
        caption: str | None = None,
    ) -> dict[str, Any]:
        return cast(
            dict[str, Any],
            await self.call(
                "copyMessage",
                chat_id=chat_id,
                from_chat_id=from_chat_id,
                message_id=message_id,
                caption=caption,
            ),
        )

    async def _send_media(
        self,
        method: str,
        field: str,
        media: InputFile | str,
        *,
        chat_id: int | str,
        caption: str | None,
        extra: Mapping[str, Any],
    ) -> Message:
        params: dict[str, Any] = {"chat_id": chat_id, field: media, "caption": caption}
        params.update(extra)
        return cast(Message, await self.call(method, **params))

    async def send_photo(
        self,
        *,
        chat_id: int | str,
        photo: InputFile | str,
        caption: str | None = None,
        **extra: Any,
    ) -> Message:
        """Send a photo by upload (`InputFile`), `file_id`, or URL."""

        return await self._send_media(
            "sendPhoto", "photo", photo, chat_id=chat_id, caption=caption, extra=extra
        )

    async def send_audio(
        self,
        *,
        chat_id: int | str,
        audio: InputFile | str,
        caption: str | None = None,
        **extra: Any,
    ) -> Message:
        return await self._send_media(
            "sendAudio", "audio", audio, chat_id=chat_id, caption=caption, extra=extra
        )

    async def send_document(
        self,
        *,
        chat_id: int | str,
        document: InputFile | str,
        caption: str | None = None,
        **extra: Any,
    ) -> Message:
        return await self._send_media(
            "sendDocument",
            "document",
            document,
            chat_id=chat_id,
            caption=caption,
            extra=extra,
        )

    async def send_video(
        self,
        *,
        chat_id: int | str,
        video: InputFile | str,
        caption: str | None = None,
        **extra: Any,
    ) -> Message:
        return await self._send_media(
            "sendVideo", "video", video, chat_id=chat_id, caption=caption, extra=extra
        )

    async def send_animation(
        self,
        *,
        chat_id: int | str,
        animation: InputFile | str,
        caption: str | None = None,
        **extra: Any,
    ) -> Message:
        return await self._send_media(
            "sendAnimation",
            "animation",
            animation,
            chat_id=chat_id,
            caption=caption,
            extra=extra,
        )

    async def send_voice(
        self,
        *,
        chat_id: int | str,
        voice: InputFile | str,
        caption: str | None = None,
        **extra: Any,
    ) -> Message:
        return await self._send_media(
            "sendVoice", "voice", voice, chat_id=chat_id, caption=caption, extra=extra
        )

    async def send_sticker(
        self, *, chat_id: int | str, sticker: InputFile | str, **extra: Any
    ) -> Message:
        return cast(
            Message,
            await self.call("sendSticker", chat_id=chat_id, sticker=sticker, **extra),
        )

    async def send_location(
        self, *, chat_id: int | str, latitude: float, longitude: float, **extra: Any
    ) -> Message:
        return cast(
            Message,
            await self.call(
                "sendLocation",
                chat_id=chat_id,
                latitude=latitude,
                longitude=longitude,
                **extra,
            ),
        )

    async def send_contact(
        self,
        *,
        chat_id: int | str,
        phone_number: str,
        first_name: str,
        last_name: str | None = None,
    ) -> Message:
        return cast(
            Message,
            await self.call(
                "sendContact",
                chat_id=chat_id,
                phone_number=phone_number,
                first_name=first_name,
                last_name=last_name,
            ),
        )

    async def send_poll(
        self,
        *,
        chat_id: int | str,
        question: str,
        options: Sequence[str | Mapping[str, Any]],
        is_anonymous: bool | None = None,
        allows_multiple_answers: bool | None = None,
    ) -> Message:
        # Current servers expect InputPollOption objects.
        poll_options = [
            {"text": option} if isinstance(option, str) else option
            for option in options
        ]
        return cast(
            Message,
            await self.call(
                "sendPoll",
                chat_id=chat_id,
                question=question,
                options=poll_options,
                is_anonymous=is_anonymous,
                allows_multiple_answers=allows_multiple_answers,
            ),
        )

    async def stop_poll(self, *, chat_id: int | str, message_id: int) -> Poll:
        return cast(
            Poll, await self.call("stopPoll", chat_id=chat_id, message_id=message_id)
        )

    async def send_dice(self, *, chat_id: int | str, emoji: str | None = None) -> Message:
        return cast(Message, await self.call("sendDice", chat_id=chat_id, emoji=emoji))

    async def send_chat_action(self, *, chat_id: int | str, action: str = "typing") -> bool:
        return cast(
            bool, await self.call("sendChatAction", chat_id=chat_id, action=action)
        )

    # -- files and chats ---------------------------------------------------

    async def get_file(self, *, file_id: str) -> File:
        return cast(File, await self.call("getFile", file_id=file_id))

    async def get_chat(self, *, chat_id: int | str) -> Chat:
        return cast(Chat, await self.call("getChat", chat_id=chat_id))

    async def get_chat_member(self, *, chat_id: int | str, user_id: int) -> ChatMember:
        return cast(
            ChatMember,
            await self.call("getChatMember", chat_id=chat_id, user_id=user_id),
        )

    async def get_chat_member_count(self, *, chat_id: int | str) -> int:
        return cast(int, await self.call("getChatMemberCount", chat_id=chat_id))

    async def ban_chat_member(
        self,
        *,
        chat_id: int | str,
        user_id: int,
        until_date: int | None = None,
        revoke_messages: bool | None = None,
    ) -> bool:
        return cast(
            bool,
            await self.call(
                "banChatMember",
                chat_id=chat_id,
                user_id=user_id,
                until_date=until_date,
                revoke_messages=revoke_messages,
            ),
        )

    async def unban_chat_member(
        self, *, chat_id: int | str, user_id: int, only_if_banned: bool | None = None
    ) -> bool:
        return cast(
            bool,
            await self.call(
                "unbanChatMember",
                chat_id=chat_id,
                user_id=user_id,
                only_if_banned=only_if_banned,
            ),
        )

    async def approve_chat_join_request(self, *, chat_id: int | str, user_id: int) -> bool:
        return cast(
            bool,
            await self.call("approveChatJoinRequest", chat_id=chat_id, user_id=user_id),
        )

    async def decline_chat_join_request(self, *, chat_id: int | str, user_id: int) -> bool:
        return cast(
            bool,
            await self.call("declineChatJoinRequest", chat_id=chat_id, user_id=user_id),
        )

    # -- queries -----------------------------------------------------------

    async def answer_callback_query(
        self,
        *,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool | None = None,
        url: str | None = None,
        cache_time: int | None = None,
    ) -> bool:
        return cast(
            bool,
            await self.call(
                "answerCallbackQuery",
                callback_query_id=callback_query_id,
                text=text,
                show_alert=show_alert,
                url=url,
                cache_time=cache_time,
            ),
        )

    async def answer_inline_query(
        self,
        *,
        inline_query_id: str,
        results: Sequence[Mapping[str, Any] | BaseModel],
        cache_time: int | None = None,
        is_personal: bool | None = None,
        next_offset: str | None = None,
    ) -> bool:
        return cast(
            bool,
            await self.call(
                "answerInlineQuery",
                inline_query_id=inline_query_id,
                results=list(results),
                cache_time=cache_time,
                is_personal=is_personal,
                next_offset=next_offset,
            ),
        )

    async def answer_shipping_query(
        self,
        *,
        shipping_query_id: str,
        ok: bool,
        shipping_options: Sequence[Mapping[str, Any]] | None = None,
        error_message: str | None = None,
    ) -> bool:
        return cast(
            bool,
            await self.call(
                "answerShippingQuery",
                shipping_query_id=shipping_query_id,
                ok=ok,
                shipping_options=list(shipping_options)
                if shipping_options is not None
                else None,
                error_message=error_message,
            ),
        )

    async def answer_pre_checkout_query(
        self,
        *,
        pre_checkout_query_id: str,
        ok: bool,
        error_message: str | None = None,
    ) -> bool:
        return cast(
            bool,
            await self.call(
                "answerPreCheckoutQuery",
                pre_checkout_query_id=pre_checkout_query_id,
                ok=ok,
                error_message=error_message,
            ),
        )

    # -- editing -----------------------------------------------------------

    async def edit_message_text(
        self,
        *,
        text: str,
        chat_id: int | str | None = None,
        message_id: int | None = None,
        inline_message_id: str | None = None,
        parse_mode: str | None = None,
        reply_markup: Mapping[str, Any] | BaseModel | None = None,
    ) -> Message | bool:
        """Edit a chat message (returns it) or an inline message (returns `True`)."""

        return cast(
            Message | bool,
            await self.call(
                "editMessageText",
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                inline_message_id=inline_message_id,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
            ),
        )

    async def edit_message_reply_markup(
        self,
        *,
        chat_id: int | str | None = None,
        message_id: int | None = None,
        inline_message_id: str | None = None,
        reply_markup: Mapping[str, Any] | BaseModel | None = None,
    ) -> Message | bool:
        return cast(
            Message | bool,
            await self.call(
                "editMessageReplyMarkup",
                chat_id=chat_id,
                message_id=message_id,
                inline_message_id=inline_message_id,
                reply_markup=reply_markup,
            ),
        )

    async def delete_message(self, *, chat_id: int | str, message_id: int) -> bool:
        return cast(
            bool,
            await self.call("deleteMessage", chat_id=chat_id, message_id=message_id),
        )

    async def set_my_commands(
        self, *, commands: Sequence[BotCommand | Mapping[str, str]]
    ) -> bool:
        return cast(bool, await self.call("setMyCommands", commands=list(commands)))
