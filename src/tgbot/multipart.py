"""`multipart/form-data` body encoding for Bot API requests.

Every remote call is sent as a multipart body, even when it carries no files,
so one encoder serves all operations.

Invariants:
- The boundary is a fixed literal; the same parameters always encode to the
  same bytes (no randomness, mapping iteration order is preserved).
- An empty parameter mapping encodes to an empty body (no closing delimiter).
- Falsy values (`""`, `0`, `False`) are serialized, never skipped.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

BOUNDARY: Final[str] = "FkEDmYLIktZjh6eaHViDpH0bbx"
CONTENT_TYPE: Final[str] = f"multipart/form-data; boundary={BOUNDARY}"

_CRLF: Final[bytes] = b"\r\n"
_DELIMITER: Final[bytes] = b"--" + BOUNDARY.encode("ascii")


@dataclass(frozen=True, slots=True)
class InputFile:
    """A binary attachment sent as a file part."""

    name: str
    data: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> InputFile:
        p = Path(path).expanduser()
        return cls(name=p.name, data=p.read_bytes())


def format_field_value(value: Any) -> str:
    """Return the text form of a non-file parameter value.

    Booleans use the JSON spelling (`true`/`false`), which is what the remote
    API parses; Python's `str(True)` would send `True`.
    """

    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _quote(value: str) -> str:
    # Keep header parameters on one line and inside their quotes.
    return value.replace("\r", "%0D").replace("\n", "%0A").replace('"', "%22")


def encode_multipart(params: Mapping[str, Any]) -> bytes:
    """Encode `params` into one complete `multipart/form-data` body."""

    parts: list[bytes] = []
    for name, value in params.items():
        header = f'Content-Disposition: form-data; name="{_quote(name)}"'
        parts.append(_DELIMITER + _CRLF + header.encode("utf-8"))

        if isinstance(value, InputFile):
            file_headers = (
                f'; filename="{_quote(value.name)}"\r\n'
                "Content-Type: application/octet-stream\r\n\r\n"
            )
            parts.append(file_headers.encode("utf-8"))
            parts.append(bytes(value.data))
        else:
            parts.append(_CRLF + _CRLF + format_field_value(value).encode("utf-8"))

        parts.append(_CRLF)

    if parts:
        parts.append(_DELIMITER + b"--" + _CRLF)

    return b"".join(parts)
