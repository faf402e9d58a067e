"""C-style escaping as used by protobuf default values and the text format."""

_SIMPLE_ESCAPES = {
    "a": 0x07,
    "b": 0x08,
    "f": 0x0C,
    "n": 0x0A,
    "r": 0x0D,
    "t": 0x09,
    "v": 0x0B,
    "\\": 0x5C,
    "'": 0x27,
    '"': 0x22,
    "?": 0x3F,
}

_ESCAPED_BYTES = {
    0x0A: "\\n",
    0x0D: "\\r",
    0x09: "\\t",
    0x22: '\\"',
    0x27: "\\'",
    0x5C: "\\\\",
}

_OCTAL = "01234567"
_HEX = "0123456789abcdefABCDEF"


def unescape(text: str) -> bytes:
    """Decode a C-escaped string into bytes.

    Characters outside ASCII are encoded as UTF-8. Raises ValueError on a
    malformed escape sequence.
    """
    out = bytearray()
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != "\\":
            out.extend(ch.encode("utf-8"))
            i += 1
            continue

        i += 1
        if i >= n:
            raise ValueError("Trailing backslash")
        ch = text[i]

        if ch in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[ch])
            i += 1
        elif ch in _OCTAL:
            end = i
            while end < n and end - i < 3 and text[end] in _OCTAL:
                end += 1
            value = int(text[i:end], 8)
            if value > 0xFF:
                raise ValueError(f"Octal escape out of range: \\{text[i:end]}")
            out.append(value)
            i = end
        elif ch in "xX":
            end = i + 1
            while end < n and end - i - 1 < 2 and text[end] in _HEX:
                end += 1
            if end == i + 1:
                raise ValueError("Hex escape without digits")
            out.append(int(text[i + 1 : end], 16))
            i = end
        elif ch in "uU":
            width = 4 if ch == "u" else 8
            digits = text[i + 1 : i + 1 + width]
            if len(digits) != width or any(d not in _HEX for d in digits):
                raise ValueError(f"Invalid unicode escape \\{ch}{digits}")
            try:
                out.extend(chr(int(digits, 16)).encode("utf-8"))
            except (ValueError, UnicodeEncodeError) as exc:
                raise ValueError(f"Invalid unicode escape \\{ch}{digits}") from exc
            i += 1 + width
        else:
            raise ValueError(f"Invalid escape sequence \\{ch}")

    return bytes(out)


def escape_bytes(data: bytes) -> str:
    """Escape arbitrary bytes, using octal for anything non-printable."""
    parts = []
    for byte in data:
        if byte in _ESCAPED_BYTES:
            parts.append(_ESCAPED_BYTES[byte])
        elif 0x20 <= byte < 0x7F:
            parts.append(chr(byte))
        else:
            parts.append(f"\\{byte:03o}")
    return "".join(parts)


def escape_text(text: str) -> str:
    """Escape a unicode string, keeping printable non-ASCII characters as-is."""
    parts = []
    for ch in text:
        code = ord(ch)
        if code in _ESCAPED_BYTES:
            parts.append(_ESCAPED_BYTES[code])
        elif code < 0x20 or code == 0x7F:
            parts.append(f"\\{code:03o}")
        else:
            parts.append(ch)
    return "".join(parts)
