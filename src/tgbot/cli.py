"""CLI entrypoint: long-poll a bot and print every notification."""

from __future__ import annotations

import argparse
import json
import logging
import re
from typing import Any, Final

import anyio
import logfire
from pydantic import BaseModel
from rich import print
from rich.markup import escape

from .config import Config
from .dispatcher import ERROR, UpdateDispatcher
from .methods import BotApi
from .types import Message, UpdateKind

_LIST_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"[,\s]+")

ECHO_TEXT: Final[str] = "Received your message"


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tgbot",
        description="Long-poll getUpdates and print each update by kind.",
    )
    parser.add_argument(
        "--token",
        default="",
        help="Bot token (never printed). Defaults to TGBOT_TOKEN.",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=int,
        default=None,
        help="getUpdates long-poll timeout seconds (default: 60).",
    )
    parser.add_argument(
        "--allowed-updates",
        default="",
        help="Optional comma/space separated update kinds, e.g. 'message,callback_query'.",
    )
    parser.add_argument(
        "--echo",
        action="store_true",
        help=f"Reply {ECHO_TEXT!r} to every incoming message.",
    )
    return parser.parse_args(argv)


def _parse_kind_list(raw: str) -> list[str] | None:
    parts = [p for p in _LIST_SPLIT_RE.split(raw.strip()) if p]
    return parts or None


def _payload_json(payload: Any) -> str:
    if isinstance(payload, BaseModel):
        data = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        data = payload
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def build_dispatcher(config: Config, *, echo: bool = False) -> UpdateDispatcher:
    """Wire a dispatcher that prints notifications (and optionally echoes)."""

    if not config.token:
        raise ValueError("A bot token is required (--token or TGBOT_TOKEN).")

    api = BotApi.from_token(
        config.token,
        api_base=config.api_base,
        timeout_seconds=config.request_timeout_seconds,
    )
    dispatcher = UpdateDispatcher(
        api,
        timeout_seconds=config.poll_timeout_seconds,
        limit=config.poll_limit,
        allowed_updates=config.allowed_updates,
    )

    for kind in UpdateKind:

        def show(payload: Any, kind: UpdateKind = kind) -> None:
            print(
                f"[cyan]telegram {kind.value}[/cyan] "
                + f"last_update_id={dispatcher.last_update_id} "
                + escape(_payload_json(payload))
            )

        dispatcher.subscribe(kind, show)

    @dispatcher.on(ERROR)
    def show_error(error: Exception) -> None:
        print(f"[red]telegram poll error[/red]: {type(error).__name__}: {escape(str(error))}")

    if echo:

        @dispatcher.on(UpdateKind.MESSAGE)
        async def reply(message: Message) -> None:
            await api.send_message(chat_id=message.chat.id, text=ECHO_TEXT)

    return dispatcher


async def run(
    *,
    token: str = "",
    timeout_seconds: int | None = None,
    allowed_updates: str = "",
    echo: bool = False,
) -> None:
    """Function entrypoint; explicit arguments override `TGBOT_*` settings."""

    logfire.configure()
    logging.basicConfig(level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()])

    overrides: dict[str, Any] = {}
    if token.strip():
        overrides["token"] = token.strip()
    if timeout_seconds is not None:
        overrides["poll_timeout_seconds"] = timeout_seconds
    kinds = _parse_kind_list(allowed_updates)
    if kinds is not None:
        overrides["allowed_updates"] = kinds
    config = Config(**overrides)

    dispatcher = build_dispatcher(config, echo=echo)
    print(
        "\n".join(
            [
                "Bot long-poll running (getUpdates).",
                f"- api_base: {config.api_base}",
                f"- poll_timeout_seconds: {config.poll_timeout_seconds}",
                f"- allowed_updates: {config.allowed_updates}",
                f"- echo: {echo}",
            ]
        )
    )
    await dispatcher.run()


async def main() -> None:
    """CLI entrypoint."""
    args = _parse_cli_args()
    await run(
        token=args.token,
        timeout_seconds=args.timeout_seconds,
        allowed_updates=args.allowed_updates,
        echo=args.echo,
    )


def entrypoint() -> None:
    anyio.run(main)
