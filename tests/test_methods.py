import json
from typing import Any

import pytest
from pydantic import ValidationError

from tgbot.methods import METHOD_RESULTS, BotApi, decode_updates, serialize_params
from tgbot.multipart import InputFile
from tgbot.transport import (
    BotApiDecodeError,
    BotApiResponseError,
    BotTransport,
    UpdateDecodeError,
)
from tgbot.types import BotCommand, Message, Update, User


class _FakeTransport:
    def __init__(self, results: dict[str, Any]) -> None:
        self.results = results
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def request(self, method: str, params: dict[str, Any]) -> Any:
        self.calls.append((method, dict(params)))
        result = self.results[method]
        if isinstance(result, Exception):
            raise result
        return result


def _api(results: dict[str, Any]) -> tuple[BotApi, _FakeTransport]:
    transport = _FakeTransport(results)
    return BotApi(transport), transport  # type: ignore[arg-type]


_MESSAGE = {
    "message_id": 10,
    "date": 1_700_000_000,
    "chat": {"id": 99, "type": "private"},
    "from": {"id": 42, "is_bot": False, "first_name": "Alice"},
    "text": "hello",
}


def test_serialize_params_drops_none_and_json_encodes_structures() -> None:
    photo = InputFile(name="a.png", data=b"png")

    params = serialize_params(
        {
            "chat_id": 1,
            "text": "hi",
            "parse_mode": None,
            "disable_notification": False,
            "reply_markup": {"inline_keyboard": [[{"text": "A", "callback_data": "a"}]]},
            "allowed_updates": ["message", "callback_query"],
            "commands": [BotCommand(command="start", description="Start")],
            "photo": photo,
        }
    )

    assert "parse_mode" not in params
    assert params["chat_id"] == 1
    assert params["disable_notification"] is False
    assert params["photo"] is photo
    assert json.loads(params["reply_markup"]) == {
        "inline_keyboard": [[{"text": "A", "callback_data": "a"}]]
    }
    assert params["allowed_updates"] == '["message","callback_query"]'
    assert json.loads(params["commands"]) == [
        {"command": "start", "description": "Start"}
    ]


def test_serialize_params_passes_raw_bytes_through() -> None:
    params = serialize_params({"certificate": b"\x00\xffpem"})

    assert params == {"certificate": b"\x00\xffpem"}


def test_decode_updates_keeps_valid_entries_around_a_malformed_one() -> None:
    decoded = decode_updates(
        [
            {"update_id": 5, "message": _MESSAGE},
            {"update_id": 6, "message": {"message_id": 11, "date": 0}},
            {"message": _MESSAGE},
        ]
    )

    assert isinstance(decoded[0], Update)
    assert decoded[0].update_id == 5
    assert isinstance(decoded[1], UpdateDecodeError)
    assert decoded[1].update_id == 6
    assert isinstance(decoded[1].__cause__, ValidationError)
    assert isinstance(decoded[2], UpdateDecodeError)
    assert decoded[2].update_id is None


def test_method_table_covers_update_polling_and_messaging() -> None:
    assert METHOD_RESULTS["getUpdates"] == list[dict[str, Any]]
    assert METHOD_RESULTS["getMe"] is User
    assert METHOD_RESULTS["sendMessage"] is Message


@pytest.mark.anyio
async def test_get_updates_forwards_offset_and_timeout_and_types_result() -> None:
    api, transport = _api(
        {
            "getUpdates": [
                {"update_id": 5, "message": _MESSAGE},
                {"update_id": 6, "callback_query": {
                    "id": "cb1",
                    "from": {"id": 42, "first_name": "Alice"},
                    "chat_instance": "ci",
                    "data": "yes",
                }},
            ]
        }
    )

    updates = await api.get_updates(
        offset=5, timeout=60, allowed_updates=["message", "callback_query"]
    )

    assert transport.calls == [
        (
            "getUpdates",
            {
                "offset": 5,
                "timeout": 60,
                "allowed_updates": '["message","callback_query"]',
            },
        )
    ]
    assert [u.update_id for u in updates] == [5, 6]
    assert isinstance(updates[0].message, Message)
    assert updates[0].message.from_user is not None
    assert updates[0].message.from_user.first_name == "Alice"
    assert updates[1].callback_query is not None
    assert updates[1].callback_query.data == "yes"


@pytest.mark.anyio
async def test_send_message_json_encodes_reply_markup() -> None:
    api, transport = _api({"sendMessage": _MESSAGE})

    message = await api.send_message(
        chat_id=99,
        text="Received your message",
        reply_markup={"inline_keyboard": [[{"text": "Ciao", "callback_data": "hi"}]]},
    )

    assert message.message_id == 10
    method, params = transport.calls[0]
    assert method == "sendMessage"
    assert params["chat_id"] == 99
    assert params["text"] == "Received your message"
    assert json.loads(params["reply_markup"])["inline_keyboard"][0][0]["text"] == "Ciao"
    assert "parse_mode" not in params


@pytest.mark.anyio
async def test_send_photo_passes_input_file_through() -> None:
    api, transport = _api({"sendPhoto": _MESSAGE})
    photo = InputFile(name="cat.jpg", data=b"\xff\xd8\xff")

    await api.send_photo(chat_id=99, photo=photo, caption="cat", has_spoiler=True)

    _, params = transport.calls[0]
    assert params == {"chat_id": 99, "photo": photo, "caption": "cat", "has_spoiler": True}


@pytest.mark.anyio
async def test_edit_message_text_result_can_be_true_for_inline_messages() -> None:
    api, _ = _api({"editMessageText": True})

    assert await api.edit_message_text(text="x", inline_message_id="abc") is True


@pytest.mark.anyio
async def test_call_unknown_method_returns_raw_result() -> None:
    api, transport = _api({"getBusinessConnection": {"id": "bc"}})

    result = await api.call("getBusinessConnection", business_connection_id="bc")

    assert result == {"id": "bc"}
    assert transport.calls == [
        ("getBusinessConnection", {"business_connection_id": "bc"})
    ]


@pytest.mark.anyio
async def test_call_result_shape_mismatch_raises_decode_error() -> None:
    api, _ = _api({"getMe": ["not", "a", "user"]})

    with pytest.raises(BotApiDecodeError, match="getMe"):
        await api.get_me()


@pytest.mark.anyio
async def test_call_propagates_envelope_failure() -> None:
    api, _ = _api({"getChat": BotApiResponseError("Bad Request: chat not found")})

    with pytest.raises(BotApiResponseError, match="chat not found"):
        await api.get_chat(chat_id=1)


def test_from_token_builds_transport() -> None:
    api = BotApi.from_token("123:ABC", api_base="http://localhost:8081", timeout_seconds=5)

    assert api.transport == BotTransport(
        token="123:ABC", api_base="http://localhost:8081", timeout_seconds=5
    )
