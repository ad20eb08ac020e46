import email.parser
import email.policy

import pytest

from tgbot.multipart import (
    BOUNDARY,
    CONTENT_TYPE,
    InputFile,
    encode_multipart,
    format_field_value,
)


def _parse_form(body: bytes) -> list[tuple[str, str | None, bytes]]:
    """Parse a form body with the stdlib MIME parser: (name, filename, data)."""

    head = f"Content-Type: {CONTENT_TYPE}\r\n\r\n".encode("ascii")
    message = email.parser.BytesParser(policy=email.policy.HTTP).parsebytes(
        head + body
    )
    assert message.is_multipart()
    fields = []
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        fields.append((name, part.get_filename(), part.get_payload(decode=True)))
    return fields


def test_encode_multipart_empty_params_is_empty_body() -> None:
    assert encode_multipart({}) == b""


def test_encode_multipart_exact_text_framing() -> None:
    body = encode_multipart({"chat_id": 42, "text": "hi"})

    assert body == (
        f"--{BOUNDARY}\r\n"
        'Content-Disposition: form-data; name="chat_id"\r\n'
        "\r\n"
        "42\r\n"
        f"--{BOUNDARY}\r\n"
        'Content-Disposition: form-data; name="text"\r\n'
        "\r\n"
        "hi\r\n"
        f"--{BOUNDARY}--\r\n"
    ).encode("ascii")


def test_encode_multipart_exact_file_framing() -> None:
    body = encode_multipart({"photo": InputFile(name="a.png", data=b"\x89PNG")})

    assert body == (
        f"--{BOUNDARY}\r\n".encode("ascii")
        + b'Content-Disposition: form-data; name="photo"; filename="a.png"\r\n'
        + b"Content-Type: application/octet-stream\r\n"
        + b"\r\n"
        + b"\x89PNG\r\n"
        + f"--{BOUNDARY}--\r\n".encode("ascii")
    )


def test_encode_multipart_text_round_trip_through_reference_parser() -> None:
    params = {
        "chat_id": "-100123",
        "text": "héllo\nsecond line",
        "parse_mode": "HTML",
        "reply_markup": '{"inline_keyboard":[[{"text":"A","callback_data":"a"}]]}',
    }

    fields = _parse_form(encode_multipart(params))

    assert [name for name, _, _ in fields] == list(params)
    assert {name: data.decode("utf-8") for name, _, data in fields} == params
    assert all(filename is None for _, filename, _ in fields)


def test_encode_multipart_binary_fidelity_through_reference_parser() -> None:
    payload = b"\x00\x01\x02\xfe\xffGIF89a\x80\x90binary"
    body = encode_multipart(
        {"chat_id": 7, "document": InputFile(name="report.bin", data=payload)}
    )

    fields = _parse_form(body)

    assert fields[0] == ("chat_id", None, b"7")
    assert fields[1] == ("document", "report.bin", payload)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("", ""), (0, "0"), (False, "false"), (True, "true"), (1.5, "1.5")],
)
def test_falsy_and_scalar_values_are_serialized(value: object, expected: str) -> None:
    assert format_field_value(value) == expected

    body = encode_multipart({"field": value})
    assert f'name="field"\r\n\r\n{expected}\r\n'.encode("ascii") in body


def test_encode_multipart_is_deterministic_and_keeps_order() -> None:
    params = {"b": 1, "a": 2, "c": InputFile(name="x", data=b"y")}

    first = encode_multipart(params)
    second = encode_multipart(dict(params))

    assert first == second
    assert first.index(b'name="b"') < first.index(b'name="a"') < first.index(b'name="c"')


def test_encode_multipart_escapes_quotes_and_newlines_in_names() -> None:
    body = encode_multipart({'we"ird\r\nname': InputFile(name='a"b.txt', data=b"")})

    assert b'name="we%22ird%0D%0Aname"; filename="a%22b.txt"' in body
    assert body.count(b"\r\n--" + BOUNDARY.encode("ascii")) == 1


def test_input_file_from_path_reads_name_and_bytes(tmp_path) -> None:
    path = tmp_path / "voice.ogg"
    path.write_bytes(b"OggS\x00")

    file = InputFile.from_path(path)

    assert file == InputFile(name="voice.ogg", data=b"OggS\x00")
