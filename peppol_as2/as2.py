"""Synchronous AS2 client: sign, post and read the MDN.

Messages are signed (detached PKCS#7 S/MIME) but never encrypted, as
PEPPOL AS2 requires.  A synchronous, signed MDN is requested and parsed
from the HTTP response.  The MDN signature itself is not verified.
"""

from __future__ import annotations

import base64
import email
import email.header
import email.parser
import email.policy
import email.utils
import hashlib
import re
import secrets
from datetime import datetime
from email.message import Message
from typing import Protocol, runtime_checkable

import httpx
import structlog
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7, pkcs12

from .exceptions import AS2TransportError
from .models import MDN, AS2ClientRequest, AS2ClientResponse, AS2ClientSettings, SigningAlgorithm

logger = structlog.get_logger()

AS2_VERSION = "1.1"

_HASHES: dict[SigningAlgorithm, type[hashes.HashAlgorithm]] = {
    SigningAlgorithm.SHA256: hashes.SHA256,
    SigningAlgorithm.SHA384: hashes.SHA384,
    SigningAlgorithm.SHA512: hashes.SHA512,
}

_PLACEHOLDER_RE = re.compile(r"\$([^$]+)\$")
_DATE_TOKEN_RE = re.compile(r"([A-Za-z])\1*")
_DATE_TOKENS = {
    "yyyy": "%Y",
    "yy": "%y",
    "MM": "%m",
    "dd": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
    "Z": "%z",
}


@runtime_checkable
class AS2Sender(Protocol):
    """Transport used by the builder to dispatch the final request."""

    def send_synchronous(self, settings: AS2ClientSettings, request: AS2ClientRequest) -> AS2ClientResponse: ...


def format_java_date(pattern: str, moment: datetime) -> str:
    """Render *moment* using the letters of a ``SimpleDateFormat`` pattern.

    Supports ``yyyy yy MM dd HH mm ss SSS Z``; other characters are copied.
    """
    out: list[str] = []
    position = 0
    for match in _DATE_TOKEN_RE.finditer(pattern):
        out.append(pattern[position : match.start()])
        token = match.group(0)
        if token == "SSS":
            out.append(f"{moment.microsecond // 1000:03d}")
        elif token in _DATE_TOKENS:
            out.append(moment.strftime(_DATE_TOKENS[token]))
        else:
            out.append(token)
        position = match.end()
    out.append(pattern[position:])
    return "".join(out)


def build_message_id(settings: AS2ClientSettings, moment: datetime | None = None) -> str:
    """Expand ``settings.message_id_format`` and wrap it in angle brackets."""
    moment = moment or datetime.now().astimezone()

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key.startswith("date."):
            return format_java_date(key[len("date.") :], moment)
        if key.startswith("rand."):
            return "".join(secrets.choice("0123456789") for _ in key[len("rand.") :])
        if key == "msg.sender.as2_id":
            return settings.sender_as2_id
        if key == "msg.receiver.as2_id":
            return settings.receiver_as2_id
        logger.warning("as2_message_id_unknown_placeholder", placeholder=key)
        return match.group(0)

    message_id = _PLACEHOLDER_RE.sub(replace, settings.message_id_format)
    return f"<{message_id.strip('<>')}>"


def calculate_mic(content: bytes, algorithm: SigningAlgorithm) -> str:
    """``base64(digest), algorithm`` as echoed back in the MDN's Received-Content-MIC."""
    digest = hashlib.new(algorithm.value.replace("-", ""), content).digest()
    return f"{base64.b64encode(digest).decode('ascii')}, {algorithm.value}"


def _quote_as2_id(as2_id: str) -> str:
    return f'"{as2_id}"' if any(ch in as2_id for ch in ' "\\') else as2_id


def _encode_text_header(value: str) -> str:
    """RFC 2047 encoded-word for non-ASCII free text; HTTP header values are ASCII."""
    if value.isascii():
        return value
    return " ".join(email.header.Header(value, "utf-8").encode().split())


def _ascii_header(name: str, value: str) -> str:
    if not value.isascii():
        raise AS2TransportError(f"The {name} header value '{value}' is not ASCII and cannot be sent over HTTP")
    return value


class AS2Client:
    """Sends one signed AS2 message per call and returns the parsed receipt."""

    def __init__(self, *, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def send_synchronous(self, settings: AS2ClientSettings, request: AS2ClientRequest) -> AS2ClientResponse:
        """Sign *request* with the sender key and POST it to the receiver.

        Key store, signing and non-ASCII header problems raise
        :class:`AS2TransportError`;
        HTTP problems are returned in ``response.exception``.
        """
        message_id = build_message_id(settings)
        mime_part = (
            f"Content-Type: {request.content_type}\r\nContent-Transfer-Encoding: binary\r\n\r\n".encode("ascii")
            + request.data
        )

        key, certificate = self._load_signing_key(settings)
        content_type, body = self._sign(mime_part, key, certificate, settings.signing_algorithm)
        mic = calculate_mic(mime_part, settings.signing_algorithm)

        headers = {
            "AS2-Version": AS2_VERSION,
            "AS2-From": _ascii_header("AS2-From", _quote_as2_id(settings.sender_as2_id)),
            "AS2-To": _ascii_header("AS2-To", _quote_as2_id(settings.receiver_as2_id)),
            "Message-ID": message_id,
            "Subject": _encode_text_header(request.subject),
            "From": _ascii_header("From", settings.sender_email),
            "Date": email.utils.formatdate(usegmt=True),
            "MIME-Version": "1.0",
            "Content-Type": content_type,
            "Disposition-Notification-To": _ascii_header("Disposition-Notification-To", settings.sender_email),
            "Disposition-Notification-Options": settings.mdn_options.as_header_value(),
        }
        if settings.user_agent:
            headers["User-Agent"] = settings.user_agent

        response = AS2ClientResponse(original_message_id=message_id, original_mic=mic)
        logger.info(
            "as2_message_sending",
            message_id=message_id,
            partnership=settings.partnership_name,
            url=settings.destination_url,
            size=len(request.data),
        )
        try:
            with httpx.Client(timeout=httpx.Timeout(settings.timeout_seconds), transport=self._transport) as client:
                http_response = client.post(settings.destination_url, content=body, headers=headers)
            response.http_status = http_response.status_code
            http_response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("as2_message_failed", message_id=message_id, error=str(exc))
            response.exception = exc
            return response

        response.mdn = parse_mdn(http_response.headers.get("content-type", ""), http_response.content)
        logger.info(
            "as2_message_sent",
            message_id=message_id,
            status_code=http_response.status_code,
            disposition=response.mdn.disposition if response.mdn else None,
            mic_matches=response.mic_matches,
        )
        return response

    def _load_signing_key(self, settings: AS2ClientSettings):
        password = settings.key_store_password.get_secret_value()
        try:
            data = settings.key_store_path.read_bytes()
        except OSError as exc:
            raise AS2TransportError(f"Failed to read key store '{settings.key_store_path}'") from exc
        try:
            store = pkcs12.load_pkcs12(data, password.encode("utf-8") if password else None)
        except ValueError as exc:
            raise AS2TransportError(f"Failed to open key store '{settings.key_store_path}': {exc}") from exc

        if store.key is None or store.cert is None:
            raise AS2TransportError(f"Key store '{settings.key_store_path}' contains no private key with certificate")
        friendly_name = store.cert.friendly_name
        if friendly_name is not None and friendly_name.decode("utf-8").lower() != settings.sender_key_alias.lower():
            logger.warning(
                "as2_key_alias_mismatch",
                key_store_alias=friendly_name.decode("utf-8"),
                sender_key_alias=settings.sender_key_alias,
            )
        return store.key, store.cert.certificate

    def _sign(self, mime_part: bytes, key, certificate, algorithm: SigningAlgorithm) -> tuple[str, bytes]:
        try:
            smime = (
                pkcs7.PKCS7SignatureBuilder()
                .set_data(mime_part)
                .add_signer(certificate, key, _HASHES[algorithm]())
                .sign(
                    serialization.Encoding.SMIME,
                    [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
                )
            )
        except (TypeError, ValueError) as exc:
            raise AS2TransportError(f"Failed to sign AS2 message: {exc}") from exc

        header_block, body = _split_headers(smime)
        headers = email.parser.BytesHeaderParser().parsebytes(header_block)
        content_type = " ".join(str(headers.get("Content-Type", "")).split())
        if not content_type:
            raise AS2TransportError("Signed message has no Content-Type")
        return content_type, body


def _split_headers(raw: bytes) -> tuple[bytes, bytes]:
    candidates = [(raw.find(sep), sep) for sep in (b"\r\n\r\n", b"\n\n") if raw.find(sep) >= 0]
    if not candidates:
        return raw, b""
    index, sep = min(candidates)
    return raw[: index + len(sep)], raw[index + len(sep) :]


def parse_mdn(content_type: str, body: bytes) -> MDN | None:
    """Extract the disposition fields from a (signed) ``multipart/report`` MDN."""
    if not content_type or not body:
        return None
    message = email.message_from_bytes(
        f"Content-Type: {content_type}\r\n\r\n".encode("latin-1") + body,
        policy=email.policy.compat32,
    )

    fields: Message | None = None
    text: str | None = None
    for part in message.walk():
        part_type = part.get_content_type()
        if part_type == "message/disposition-notification":
            fields = _notification_fields(part)
        elif part_type == "text/plain" and text is None:
            payload = part.get_payload(decode=True)
            if isinstance(payload, bytes):
                text = payload.decode(part.get_content_charset() or "utf-8", errors="replace").strip()
    if fields is None:
        return None

    def field(name: str) -> str | None:
        value = fields.get(name)
        return " ".join(str(value).split()) if value is not None else None

    return MDN(
        disposition=field("Disposition"),
        received_content_mic=field("Received-Content-MIC"),
        original_message_id=field("Original-Message-ID"),
        final_recipient=field("Final-Recipient"),
        text=text,
        raw=body,
    )


def _notification_fields(part: Message) -> Message:
    payload = part.get_payload()
    if isinstance(payload, list) and payload:
        return payload[0]
    return email.parser.HeaderParser().parsestr(payload if isinstance(payload, str) else "")
