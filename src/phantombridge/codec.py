"""Conversion between phantombridge value types and the JSON wire format."""

import datetime
import email.utils
from collections.abc import Callable
from collections.abc import Mapping
from typing import Any

import httpx

from phantombridge.errors import ProtocolError
from phantombridge.values import Cookie
from phantombridge.values import PaperMargin
from phantombridge.values import PaperSize
from phantombridge.values import Position
from phantombridge.values import Rect
from phantombridge.values import ViewportSize
from phantombridge.values import WebPageSettings

WireValue = Any
_SETTINGS_WIRE_KEYS: dict[str, str] = {
    "javascript_enabled": "javascriptEnabled",
    "load_images": "loadImages",
    "local_to_remote_url_access_enabled": "localToRemoteUrlAccessEnabled",
    "user_agent": "userAgent",
    "user_name": "userName",
    "password": "password",
    "xss_auditing_enabled": "XSSAuditingEnabled",
    "web_security_enabled": "webSecurityEnabled",
    "resource_timeout": "resourceTimeout",
}
_MARGIN_SIDES: tuple[str, ...] = ("top", "bottom", "left", "right")


def _as_utc(moment: datetime.datetime) -> datetime.datetime:
    """Normalize a datetime to UTC, treating naive values as UTC.

    :param moment: Datetime to normalize.
    :returns: Timezone-aware UTC datetime.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc)


def format_http_date(moment: datetime.datetime) -> str:
    """Format a datetime the way HTTP cookie expiry dates are written.

    :param moment: Datetime to format.
    :returns: RFC 1123 date such as ``Thu, 02 Jan 2020 03:04:05 GMT``.
    """
    return email.utils.format_datetime(_as_utc(moment).replace(microsecond=0), usegmt=True)


def _require_mapping(wire: WireValue, kind_name: str) -> Mapping[str, Any]:
    """Return ``wire`` as a mapping or fail with a protocol error.

    :param wire: Decoded JSON value.
    :param kind_name: Human-readable name of the expected type.
    :returns: The wire value as a mapping.
    :raises ProtocolError: If ``wire`` is not a JSON object.
    """
    if isinstance(wire, Mapping) is False:
        raise ProtocolError(f"{kind_name} wire value must be an object, got {type(wire).__name__}")
    return wire


def _int_field(wire: Mapping[str, Any], key: str) -> int:
    """Read one numeric field, defaulting to zero.

    :param wire: Wire object.
    :param key: Field name.
    :returns: Integer value.
    """
    raw: object = wire.get(key)
    if raw is None:
        return 0
    return int(raw)


def _str_field(wire: Mapping[str, Any], key: str) -> str:
    """Read one string field, defaulting to the empty string.

    :param wire: Wire object.
    :param key: Field name.
    :returns: String value.
    """
    raw: object = wire.get(key)
    if raw is None:
        return ""
    return str(raw)


def encode_rect(rect: Rect) -> dict[str, int]:
    """Encode a rectangle.

    :param rect: Rectangle to encode.
    :returns: Wire object.
    """
    return {"top": rect.top, "left": rect.left, "width": rect.width, "height": rect.height}


def decode_rect(wire: WireValue) -> Rect:
    """Decode a rectangle; ``None`` decodes to the unset rectangle.

    :param wire: Wire object.
    :returns: Decoded rectangle.
    """
    if wire is None:
        return Rect()
    mapping: Mapping[str, Any] = _require_mapping(wire, "Rect")
    return Rect(
        top=_int_field(mapping, "top"),
        left=_int_field(mapping, "left"),
        width=_int_field(mapping, "width"),
        height=_int_field(mapping, "height"),
    )


def encode_position(position: Position) -> dict[str, int]:
    """Encode a scroll position.

    :param position: Position to encode.
    :returns: Wire object.
    """
    return {"top": position.top, "left": position.left}


def decode_position(wire: WireValue) -> Position:
    """Decode a scroll position; ``None`` decodes to the origin.

    :param wire: Wire object.
    :returns: Decoded position.
    """
    if wire is None:
        return Position()
    mapping: Mapping[str, Any] = _require_mapping(wire, "Position")
    return Position(top=_int_field(mapping, "top"), left=_int_field(mapping, "left"))


def encode_viewport_size(size: ViewportSize) -> dict[str, int]:
    """Encode a viewport size.

    :param size: Size to encode.
    :returns: Wire object.
    """
    return {"width": size.width, "height": size.height}


def decode_viewport_size(wire: WireValue) -> ViewportSize:
    """Decode a viewport size.

    :param wire: Wire object.
    :returns: Decoded size.
    """
    if wire is None:
        return ViewportSize()
    mapping: Mapping[str, Any] = _require_mapping(wire, "ViewportSize")
    return ViewportSize(width=_int_field(mapping, "width"), height=_int_field(mapping, "height"))


def encode_paper_size(size: PaperSize) -> dict[str, object]:
    """Encode a paper size, omitting every unset field.

    :param size: Paper size to encode.
    :returns: Wire object.
    """
    wire: dict[str, object] = {}
    for key in ("width", "height", "format", "orientation"):
        field_value: str = getattr(size, key)
        if field_value != "":
            wire[key] = field_value
    if size.margin is not None:
        wire["margin"] = {side: getattr(size.margin, side) for side in _MARGIN_SIDES}
    return wire


def decode_paper_size(wire: WireValue) -> PaperSize:
    """Decode a paper size; a missing margin stays ``None``.

    :param wire: Wire object.
    :returns: Decoded paper size.
    """
    if wire is None:
        return PaperSize()
    mapping: Mapping[str, Any] = _require_mapping(wire, "PaperSize")

    margin: PaperMargin | None = None
    raw_margin: object = mapping.get("margin")
    if isinstance(raw_margin, str) is True:
        margin = PaperMargin(top=raw_margin, bottom=raw_margin, left=raw_margin, right=raw_margin)
    elif isinstance(raw_margin, Mapping) is True:
        margin = PaperMargin(**{side: _str_field(raw_margin, side) for side in _MARGIN_SIDES})
    elif raw_margin is not None:
        raise ProtocolError(f"PaperSize margin must be a string or object, got {type(raw_margin).__name__}")

    return PaperSize(
        width=_str_field(mapping, "width"),
        height=_str_field(mapping, "height"),
        format=_str_field(mapping, "format"),
        orientation=_str_field(mapping, "orientation"),
        margin=margin,
    )


def encode_cookie(cookie: Cookie) -> dict[str, object]:
    """Encode a cookie, deriving the expiry string from the timestamp when needed.

    :param cookie: Cookie to encode.
    :returns: Wire object.
    """
    wire: dict[str, object] = {
        "domain": cookie.domain,
        "name": cookie.name,
        "value": cookie.value,
        "path": cookie.path,
        "httponly": cookie.http_only,
        "secure": cookie.secure,
    }
    expires_text: str = cookie.raw_expires
    if expires_text == "" and cookie.expires is not None:
        expires_text = format_http_date(cookie.expires)
    if expires_text != "":
        wire["expires"] = expires_text
    if cookie.expires is not None:
        wire["expiry"] = int(_as_utc(cookie.expires).timestamp())
    return wire


def decode_cookie(wire: WireValue) -> Cookie:
    """Decode a cookie.

    :param wire: Wire object.
    :returns: Decoded cookie; ``raw_expires`` holds the engine's date string.
    """
    mapping: Mapping[str, Any] = _require_mapping(wire, "Cookie")
    expires: datetime.datetime | None = None
    raw_expiry: object = mapping.get("expiry")
    if raw_expiry is not None and raw_expiry != 0:
        expires = datetime.datetime.fromtimestamp(int(raw_expiry), tz=datetime.timezone.utc)
    return Cookie(
        name=_str_field(mapping, "name"),
        value=_str_field(mapping, "value"),
        domain=_str_field(mapping, "domain"),
        path=_str_field(mapping, "path"),
        expires=expires,
        raw_expires=_str_field(mapping, "expires"),
        secure=bool(mapping.get("secure", False)),
        http_only=bool(mapping.get("httponly", False)),
    )


def encode_cookies(cookies: list[Cookie]) -> list[dict[str, object]]:
    """Encode a list of cookies.

    :param cookies: Cookies to encode.
    :returns: Wire list.
    """
    return [encode_cookie(cookie) for cookie in cookies]


def decode_cookies(wire: WireValue) -> list[Cookie]:
    """Decode a list of cookies.

    :param wire: Wire list.
    :returns: Decoded cookies in engine order.
    """
    if wire is None:
        return []
    if isinstance(wire, list) is False:
        raise ProtocolError("Cookie list wire value must be an array")
    return [decode_cookie(item) for item in wire]


def encode_headers(headers: httpx.Headers | Mapping[str, str]) -> dict[str, str]:
    """Encode a header map, keeping the caller's key casing.

    Repeated keys are joined with ``", "`` under the first spelling seen.

    :param headers: Headers to encode.
    :returns: Wire object.
    """
    normalized: httpx.Headers = httpx.Headers(headers)
    wire: dict[str, str] = {}
    spelling_by_lower: dict[str, str] = {}
    for raw_key, raw_value in normalized.raw:
        key: str = raw_key.decode(normalized.encoding)
        value: str = raw_value.decode(normalized.encoding)
        lower_key: str = key.lower()
        existing_key: str | None = spelling_by_lower.get(lower_key)
        if existing_key is None:
            spelling_by_lower[lower_key] = key
            wire[key] = value
        else:
            wire[existing_key] = f"{wire[existing_key]}, {value}"
    return wire


def decode_headers(wire: WireValue) -> httpx.Headers:
    """Decode a header map.

    :param wire: Wire object.
    :returns: Case-insensitive header map.
    """
    if wire is None:
        return httpx.Headers()
    mapping: Mapping[str, Any] = _require_mapping(wire, "Headers")
    return httpx.Headers({str(key): str(value) for key, value in mapping.items()})


def encode_settings(settings: WebPageSettings) -> dict[str, object]:
    """Encode page settings using the engine's key names.

    :param settings: Settings to encode.
    :returns: Wire object.
    """
    wire: dict[str, object] = dict(settings.extra)
    for attr_name, wire_key in _SETTINGS_WIRE_KEYS.items():
        wire[wire_key] = getattr(settings, attr_name)
    return wire


def decode_settings(wire: WireValue) -> WebPageSettings:
    """Decode page settings; unknown engine keys are kept in ``extra``.

    :param wire: Wire object.
    :returns: Decoded settings.
    """
    mapping: Mapping[str, Any] = _require_mapping(wire, "WebPageSettings")
    defaults: WebPageSettings = WebPageSettings()
    values: dict[str, object] = {}
    for attr_name, wire_key in _SETTINGS_WIRE_KEYS.items():
        raw: object = mapping.get(wire_key)
        if raw is None:
            values[attr_name] = getattr(defaults, attr_name)
        else:
            values[attr_name] = raw
    known_keys: set[str] = set(_SETTINGS_WIRE_KEYS.values())
    extra: dict[str, object] = {key: value for key, value in mapping.items() if key not in known_keys}
    return WebPageSettings(
        javascript_enabled=bool(values["javascript_enabled"]),
        load_images=bool(values["load_images"]),
        local_to_remote_url_access_enabled=bool(values["local_to_remote_url_access_enabled"]),
        user_agent=str(values["user_agent"]),
        user_name=str(values["user_name"]),
        password=str(values["password"]),
        xss_auditing_enabled=bool(values["xss_auditing_enabled"]),
        web_security_enabled=bool(values["web_security_enabled"]),
        resource_timeout=int(values["resource_timeout"]),
        extra=extra,
    )


_ENCODERS: dict[type, Callable[[Any], WireValue]] = {
    Rect: encode_rect,
    Position: encode_position,
    ViewportSize: encode_viewport_size,
    PaperSize: encode_paper_size,
    Cookie: encode_cookie,
    WebPageSettings: encode_settings,
    httpx.Headers: encode_headers,
}
_DECODERS: dict[type, Callable[[WireValue], Any]] = {
    Rect: decode_rect,
    Position: decode_position,
    ViewportSize: decode_viewport_size,
    PaperSize: decode_paper_size,
    Cookie: decode_cookie,
    WebPageSettings: decode_settings,
    httpx.Headers: decode_headers,
}


def encode_value(value: object) -> WireValue:
    """Encode one value for the wire.

    :param value: Domain value, primitive, or container of those.
    :returns: JSON-compatible value.
    :raises TypeError: If the value has no wire representation.
    """
    if value is None or isinstance(value, (bool, int, float, str)) is True:
        return value

    encoder: Callable[[Any], WireValue] | None = _ENCODERS.get(type(value))
    if encoder is not None:
        return encoder(value)

    if isinstance(value, (list, tuple)) is True:
        return [encode_value(item) for item in value]
    if isinstance(value, Mapping) is True:
        return {str(key): encode_value(item) for key, item in value.items()}
    raise TypeError(f"Cannot encode value of type {type(value).__name__} for the engine")


def decode_value(kind: type, wire: WireValue) -> Any:
    """Decode one wire value into ``kind``.

    :param kind: Target domain type, or a primitive type.
    :param wire: JSON value received from the engine.
    :returns: Decoded value.
    :raises ProtocolError: If the wire value does not fit ``kind``.
    """
    decoder: Callable[[WireValue], Any] | None = _DECODERS.get(kind)
    if decoder is not None:
        return decoder(wire)

    if kind is bool:
        return bool(wire)
    if kind in (int, float):
        if wire is None:
            return kind(0)
        if isinstance(wire, (int, float)) is False:
            raise ProtocolError(f"Expected a number, got {type(wire).__name__}")
        return kind(wire)
    if kind is str:
        if wire is None:
            return ""
        return str(wire)
    raise TypeError(f"No wire decoder registered for {kind.__name__}")
