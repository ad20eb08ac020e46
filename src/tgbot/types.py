"""Bot API data shapes as Pydantic models.

Only the fields this client reads are declared; every model keeps unknown
fields (`extra="allow"`) so newer server payloads validate instead of failing
the poll that carried them. Kinds the client has no dedicated model for are
kept as raw JSON objects.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TelegramObject(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ResponseParameters(TelegramObject):
    migrate_to_chat_id: int | None = None
    retry_after: int | None = None


class User(TelegramObject):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: str | None = None
    username: str | None = None
    language_code: str | None = None


class Chat(TelegramObject):
    id: int
    type: str
    title: str | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    is_forum: bool | None = None


class MessageEntity(TelegramObject):
    type: str
    offset: int
    length: int
    url: str | None = None
    user: User | None = None


class PhotoSize(TelegramObject):
    file_id: str
    file_unique_id: str
    width: int
    height: int
    file_size: int | None = None


class Document(TelegramObject):
    file_id: str
    file_unique_id: str
    file_name: str | None = None
    mime_type: str | None = None
    file_size: int | None = None


class Message(TelegramObject):
    message_id: int
    date: int
    chat: Chat
    # `from` is a Python keyword.
    from_user: User | None = Field(default=None, alias="from")
    sender_chat: Chat | None = None
    message_thread_id: int | None = None
    reply_to_message: Message | None = None
    edit_date: int | None = None
    text: str | None = None
    caption: str | None = None
    entities: list[MessageEntity] | None = None
    photo: list[PhotoSize] | None = None
    document: Document | None = None


class CallbackQuery(TelegramObject):
    id: str
    from_user: User = Field(alias="from")
    chat_instance: str
    message: Message | None = None
    inline_message_id: str | None = None
    data: str | None = None
    game_short_name: str | None = None


class InlineQuery(TelegramObject):
    id: str
    from_user: User = Field(alias="from")
    query: str
    offset: str
    chat_type: str | None = None


class ChosenInlineResult(TelegramObject):
    result_id: str
    from_user: User = Field(alias="from")
    query: str
    inline_message_id: str | None = None


class ShippingAddress(TelegramObject):
    country_code: str
    state: str = ""
    city: str
    street_line1: str
    street_line2: str = ""
    post_code: str


class ShippingQuery(TelegramObject):
    id: str
    from_user: User = Field(alias="from")
    invoice_payload: str
    shipping_address: ShippingAddress


class OrderInfo(TelegramObject):
    name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    shipping_address: ShippingAddress | None = None


class PreCheckoutQuery(TelegramObject):
    id: str
    from_user: User = Field(alias="from")
    currency: str
    total_amount: int
    invoice_payload: str
    shipping_option_id: str | None = None
    order_info: OrderInfo | None = None


class PollOption(TelegramObject):
    text: str
    voter_count: int


class Poll(TelegramObject):
    id: str
    question: str
    options: list[PollOption]
    total_voter_count: int
    is_closed: bool
    is_anonymous: bool
    type: str
    allows_multiple_answers: bool


class PollAnswer(TelegramObject):
    poll_id: str
    option_ids: list[int]
    user: User | None = None
    voter_chat: Chat | None = None


class ChatMember(TelegramObject):
    status: str
    user: User


class ChatMemberUpdated(TelegramObject):
    chat: Chat
    from_user: User = Field(alias="from")
    date: int
    old_chat_member: ChatMember
    new_chat_member: ChatMember


class ChatJoinRequest(TelegramObject):
    chat: Chat
    from_user: User = Field(alias="from")
    user_chat_id: int
    date: int
    bio: str | None = None


class File(TelegramObject):
    file_id: str
    file_unique_id: str
    file_size: int | None = None
    file_path: str | None = None


class WebhookInfo(TelegramObject):
    url: str
    has_custom_certificate: bool
    pending_update_count: int
    last_error_date: int | None = None
    last_error_message: str | None = None


class BotCommand(TelegramObject):
    command: str
    description: str


class UserProfilePhotos(TelegramObject):
    total_count: int
    photos: list[list[PhotoSize]]


class UpdateKind(StrEnum):
    """Closed set of update kind field names; exactly one is set per update."""

    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    BUSINESS_CONNECTION = "business_connection"
    BUSINESS_MESSAGE = "business_message"
    EDITED_BUSINESS_MESSAGE = "edited_business_message"
    DELETED_BUSINESS_MESSAGES = "deleted_business_messages"
    MESSAGE_REACTION = "message_reaction"
    MESSAGE_REACTION_COUNT = "message_reaction_count"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    CALLBACK_QUERY = "callback_query"
    SHIPPING_QUERY = "shipping_query"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"
    PURCHASED_PAID_MEDIA = "purchased_paid_media"
    POLL = "poll"
    POLL_ANSWER = "poll_answer"
    MY_CHAT_MEMBER = "my_chat_member"
    CHAT_MEMBER = "chat_member"
    CHAT_JOIN_REQUEST = "chat_join_request"
    CHAT_BOOST = "chat_boost"
    REMOVED_CHAT_BOOST = "removed_chat_boost"


class Update(TelegramObject):
    """One polled event: `update_id` plus exactly one populated kind field."""

    update_id: int
    message: Message | None = None
    edited_message: Message | None = None
    channel_post: Message | None = None
    edited_channel_post: Message | None = None
    business_connection: dict[str, Any] | None = None
    business_message: Message | None = None
    edited_business_message: Message | None = None
    deleted_business_messages: dict[str, Any] | None = None
    message_reaction: dict[str, Any] | None = None
    message_reaction_count: dict[str, Any] | None = None
    inline_query: InlineQuery | None = None
    chosen_inline_result: ChosenInlineResult | None = None
    callback_query: CallbackQuery | None = None
    shipping_query: ShippingQuery | None = None
    pre_checkout_query: PreCheckoutQuery | None = None
    purchased_paid_media: dict[str, Any] | None = None
    poll: Poll | None = None
    poll_answer: PollAnswer | None = None
    my_chat_member: ChatMemberUpdated | None = None
    chat_member: ChatMemberUpdated | None = None
    chat_join_request: ChatJoinRequest | None = None
    chat_boost: dict[str, Any] | None = None
    removed_chat_boost: dict[str, Any] | None = None

    @property
    def kind(self) -> UpdateKind | None:
        """The populated kind, or `None` for a kind this client does not know."""

        for kind in UpdateKind:
            if getattr(self, kind.value) is not None:
                return kind
        return None

    @property
    def payload(self) -> Any:
        kind = self.kind
        return None if kind is None else getattr(self, kind.value)
