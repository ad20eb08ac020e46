"""Runtime configuration for embedding applications and the CLI.

The client classes take their settings as arguments and never read the
environment; `Config` is the optional layer that does.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .transport import DEFAULT_API_BASE
from .types import UpdateKind


class Config(BaseSettings):
    """Settings loaded from constructor kwargs and `TGBOT_*` environment variables.

    Invariant:
        `allowed_updates`, when set, only names known update kinds.
        `request_timeout_seconds=None` means no client-side socket timeout;
        a long-poll then waits as long as the server holds it open.
    """

    model_config = SettingsConfigDict(env_prefix="TGBOT_")

    token: str | None = Field(default=None, repr=False)
    api_base: str = DEFAULT_API_BASE
    poll_timeout_seconds: int = Field(default=60, gt=0)
    poll_limit: int | None = Field(default=None, ge=1, le=100)
    allowed_updates: list[str] | None = None
    request_timeout_seconds: float | None = Field(default=None, gt=0)

    @field_validator("allowed_updates")
    @classmethod
    def _validate_allowed_updates(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        unknown = [kind for kind in value if kind not in UpdateKind]
        if unknown:
            raise ValueError(f"unknown update kind(s): {unknown}")
        return value

    @field_validator("api_base")
    @classmethod
    def _strip_api_base(cls, value: str) -> str:
        return value.rstrip("/")
