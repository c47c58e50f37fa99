"""
Fail-soft text codecs and the layered decode pipeline.

Every primitive takes a string and returns a string. Input a primitive
cannot decode comes back unchanged, so callers can throw speculative
chains at text that may or may not be encoded.
"""
from __future__ import annotations
import base64
import binascii
import logging
import re
import string
from typing import Callable, Iterable, Optional, Union
from urllib.parse import unquote_to_bytes

from .base import DecodeResult, EncodedPayload, Encoding
from . import unpacker

log = logging.getLogger("siphon.resolver.decoders")

_B64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_B64_LOOSE_RE = re.compile(r"^[A-Za-z0-9+/_-]+={0,2}$")
_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")
_BAD_PERCENT_RE = re.compile(r"%(?![0-9a-fA-F]{2})")
_PERCENT_RE = re.compile(r"%[0-9a-fA-F]{2}")

_ROT13 = str.maketrans(
    string.ascii_lowercase + string.ascii_uppercase,
    string.ascii_lowercase[13:] + string.ascii_lowercase[:13]
    + string.ascii_uppercase[13:] + string.ascii_uppercase[:13],
)


def _utf8(data: bytes) -> Optional[str]:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


# ──────────────────────────────
#  Primitives
# ──────────────────────────────
def b64decode(text: str) -> str:
    s = "".join(text.split()).replace("-", "+").replace("_", "/")
    if not s:
        return text
    s += "=" * (-len(s) % 4)
    if not _B64_RE.match(s):
        return text
    try:
        raw = base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError):
        return text
    out = _utf8(raw)
    return text if out is None else out


# URL-safe input goes through the same normalization
b64url_decode = b64decode


def hex_decode(text: str) -> str:
    s = "".join(text.split())
    if s[:2].lower() == "0x":
        s = s[2:]
    if not s or len(s) % 2 or not _HEX_RE.match(s):
        return text
    out = _utf8(bytes.fromhex(s))
    return text if out is None else out


def url_decode(text: str) -> str:
    if "%" not in text or _BAD_PERCENT_RE.search(text):
        return text
    out = _utf8(unquote_to_bytes(text))
    return text if out is None else out


def rot13(text: str) -> str:
    return text.translate(_ROT13)


def reverse(text: str) -> str:
    # Code-point reversal: combining marks and ZWJ sequences do not survive
    return text[::-1]


def packer(text: str) -> str:
    return unpacker.unpack(text)


DECODERS: dict[Encoding, Callable[[str], str]] = {
    Encoding.BASE64: b64decode,
    Encoding.BASE64URL: b64url_decode,
    Encoding.HEX: hex_decode,
    Encoding.URL: url_decode,
    Encoding.ROT13: rot13,
    Encoding.REVERSE: reverse,
    Encoding.PACKER: packer,
}


# ──────────────────────────────
#  Pipelines
# ──────────────────────────────
def _as_encoding(step: Union[Encoding, str]) -> Optional[Encoding]:
    if isinstance(step, Encoding):
        return step
    try:
        return Encoding(str(step).strip().lower())
    except ValueError:
        return None


def decode_chain(raw: str, chain: Iterable[Union[Encoding, str]]) -> DecodeResult:
    """Apply `chain` in order, feeding each layer the previous layer's output."""
    text = raw
    applied: list[str] = []
    for step in chain:
        enc = _as_encoding(step)
        if enc is None:
            log.debug(f"Skipping unknown encoding {step!r}")
            continue
        out = DECODERS[enc](text)
        if out == text:
            log.debug(f"{enc.value} layer was a no-op")
        else:
            applied.append(enc.value)
        text = out
    return DecodeResult(output=text, layers=applied)


def decode(payload: EncodedPayload) -> DecodeResult:
    return decode_chain(payload.raw, payload.chain)


def detect_encoding(text: str) -> Optional[Encoding]:
    """Guess the outermost layer of `text`, or None if it looks like plain text."""
    s = text.strip()
    if not s:
        return None
    if unpacker.detect(s):
        return Encoding.PACKER
    if _PERCENT_RE.search(s) and not _BAD_PERCENT_RE.search(s):
        return Encoding.URL
    if s.startswith("http"):
        return None
    compact = "".join(s.split())
    if compact[:2].lower() == "0x":
        compact = compact[2:]
    if len(compact) >= 8 and len(compact) % 2 == 0 and _HEX_RE.match(compact):
        return Encoding.HEX
    if len(compact) >= 8 and _B64_LOOSE_RE.match(compact):
        return Encoding.BASE64URL if ("-" in compact or "_" in compact) else Encoding.BASE64
    if s[::-1].startswith("http"):
        return Encoding.REVERSE
    if s.startswith(("uggc", "uggcf")):
        return Encoding.ROT13
    return None


def auto_decode(text: str, max_depth: int = 5) -> DecodeResult:
    """Peel guessed layers until the text stops changing or looks like a URL."""
    current = text
    applied: list[str] = []
    for _ in range(max_depth):
        enc = detect_encoding(current)
        if enc is None:
            break
        out = DECODERS[enc](current.strip())
        if out == current.strip():
            break
        applied.append(enc.value)
        current = out
        if current.startswith("http"):
            break
    return DecodeResult(output=current, layers=applied)
