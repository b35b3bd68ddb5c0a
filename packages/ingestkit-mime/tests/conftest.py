"""Shared fixtures for ingestkit-mime tests."""

from __future__ import annotations

import base64
from email import encoders
from email.mime.base import MIMEBase
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

from ingestkit_mime.config import DecodeOptions


# ---------------------------------------------------------------------------
# Raw message builders
# ---------------------------------------------------------------------------

PLAIN_BODY = "Hello, this is a test email body."
HTML_BODY = "<html><body><p>Hello, this is <b>HTML</b> body.</p></body></html>"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 50
PDF_BYTES = b"%PDF-1.4\n" + b"x" * 200 + b"\n%%EOF"

BASE_HEADERS = (
    "From: sender@example.com",
    "To: recipient@example.com",
    "Subject: Test Subject",
    "Date: Mon, 17 Feb 2026 12:00:00 +0000",
    "MIME-Version: 1.0",
)


def make_part(headers: list[str] | tuple[str, ...], body: bytes | str) -> bytes:
    """One part: header lines, blank line, body (CRLF line endings)."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    head = "\r\n".join(headers).encode("utf-8")
    return head + b"\r\n\r\n" + body


def make_multipart(
    parts: list[bytes],
    boundary: str = "b1",
    subtype: str = "mixed",
    headers: tuple[str, ...] = BASE_HEADERS,
    close: bool = True,
) -> bytes:
    """A complete message whose top-level body is a multipart container."""
    out = [
        "\r\n".join(headers).encode("utf-8"),
        f'\r\nContent-Type: multipart/{subtype}; boundary="{boundary}"\r\n\r\n'.encode(),
        b"This is a multi-part message in MIME format.\r\n",
    ]
    for p in parts:
        out.append(f"--{boundary}\r\n".encode())
        out.append(p)
        out.append(b"\r\n")
    if close:
        out.append(f"--{boundary}--\r\n".encode())
    return b"".join(out)


def nested(parts: list[bytes], boundary: str, subtype: str = "alternative") -> bytes:
    """A multipart container usable as a part of another container."""
    out = [f'Content-Type: multipart/{subtype}; boundary="{boundary}"\r\n\r\n'.encode()]
    for p in parts:
        out.append(f"--{boundary}\r\n".encode())
        out.append(p)
        out.append(b"\r\n")
    out.append(f"--{boundary}--".encode())
    return b"".join(out)


def text_part(text: str, subtype: str = "plain", charset: str = "utf-8") -> bytes:
    return make_part(
        [f"Content-Type: text/{subtype}; charset={charset}", "Content-Transfer-Encoding: 8bit"],
        text.encode(charset),
    )


def b64_attachment(
    data: bytes,
    filename: str = "report.pdf",
    content_type: str = "application/pdf",
    disposition: str = "attachment",
) -> bytes:
    encoded = base64.encodebytes(data).decode("ascii")
    return make_part(
        [
            f'Content-Type: {content_type}; name="{filename}"',
            "Content-Transfer-Encoding: base64",
            f'Content-Disposition: {disposition}; filename="{filename}"',
        ],
        encoded,
    )


def build_stdlib_message(*, plain: str | None = PLAIN_BODY, html: str | None = HTML_BODY) -> bytes:
    """Plain + HTML alternative with a PDF attachment and an inline image,
    built with the standard library's MIME writers."""
    outer = MIMEMultipart("mixed")
    outer["From"] = "sender@example.com"
    outer["To"] = "recipient@example.com"
    outer["Subject"] = "Quarterly report"

    alternative = MIMEMultipart("related")
    body = MIMEMultipart("alternative")
    if plain is not None:
        body.attach(MIMEText(plain, "plain", "utf-8"))
    if html is not None:
        body.attach(MIMEText(html, "html", "utf-8"))
    alternative.attach(body)

    image = MIMEImage(PNG_BYTES, "png")
    image.add_header("Content-ID", "<logo@example.com>")
    alternative.attach(image)
    outer.attach(alternative)

    pdf = MIMEBase("application", "pdf")
    pdf.set_payload(PDF_BYTES)
    encoders.encode_base64(pdf)
    pdf.add_header("Content-Disposition", "attachment", filename="report.pdf")
    outer.attach(pdf)
    return outer.as_bytes()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def options() -> DecodeOptions:
    return DecodeOptions()


@pytest.fixture
def strict_options() -> DecodeOptions:
    return DecodeOptions(strict_mode=True)


@pytest.fixture
def simple_text_message() -> bytes:
    return make_part(
        list(BASE_HEADERS) + ["Content-Type: text/plain; charset=utf-8"],
        PLAIN_BODY,
    )


@pytest.fixture
def alternative_message() -> bytes:
    return make_multipart(
        [text_part(PLAIN_BODY), text_part(HTML_BODY, "html")],
        subtype="alternative",
    )


@pytest.fixture
def stdlib_message() -> bytes:
    return build_stdlib_message()
