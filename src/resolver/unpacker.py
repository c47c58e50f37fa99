"""
JavaScript p,a,c,k,e,d unpacker.

Many streaming embed hosts ship their player setup through Dean Edwards'
packer:

    eval(function(p,a,c,k,e,d){...}('<body>',<radix>,<count>,'<dict>'.split('|'),0,{}))

The shim walks the dictionary from the last index down, replacing every
whole-word base-<radix> token in <body> with its dictionary entry. This
module does the same thing without a JS engine so we can regex stream
URLs out of the result.

Nothing here raises: text that is not a well-formed packer block comes
back exactly as it went in.
"""
from __future__ import annotations
import logging
import re
from typing import Optional

from .base import PackedScriptBlock
from .chain import first_success
from .errors import MalformedInput

log = logging.getLogger("siphon.resolver.unpacker")

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
MIN_RADIX, MAX_RADIX = 2, 62
LONG_DICTIONARY = 50

SIGNATURE_RE = re.compile(r"function\s*\(\s*p\s*,\s*a\s*,\s*c\s*,\s*k\s*,\s*e\s*,\s*[dr]\s*\)")
_MARKER_RE = re.compile(r"\}\s*\(\s*['\"]")
_SPLIT_RE = re.compile(r"(['\"])\s*\.split\(\s*(['\"])\|\2\s*\)")
_ARGS_TAIL_RE = re.compile(r",\s*(\d{1,2})\s*,\s*(\d+)\s*,\s*$")
_ARGS_RE = re.compile(r",\s*(\d{1,2})\s*,\s*(\d+)\s*,\s*['\"]")
_WORD_RE = re.compile(r"\b\w+\b", re.ASCII)


def base_encode(val: int, base: int) -> str:
    """Encode `val` in the given base (up to 62)."""
    if val < base:
        return ALPHABET[val]
    return base_encode(val // base, base) + ALPHABET[val % base]


def detect(text: str) -> bool:
    """Check if text contains a packer shim."""
    return bool(SIGNATURE_RE.search(text))


# ──────────────────────────────
#  Argument extraction
# ──────────────────────────────
def _opening_quote(text: str, close: int) -> Optional[int]:
    """Index of the unescaped quote that opens the literal closed at `close`."""
    quote = text[close]
    i = close - 1
    while i >= 0:
        if text[i] == quote:
            slashes = 0
            j = i - 1
            while j >= 0 and text[j] == "\\":
                slashes += 1
                j -= 1
            if slashes % 2 == 0:
                return i
        i -= 1
    return None


def _split_literals(text: str, start: int):
    """Yield (literal_start, content) for every 'x'.split('|') after `start`."""
    for m in _SPLIT_RE.finditer(text, start):
        opening = _opening_quote(text, m.start())
        if opening is None or opening < start:
            continue
        yield opening, text[opening + 1:m.start()]


def _long_dictionary(text: str, start: int) -> Optional[tuple[int, str]]:
    for opening, content in _split_literals(text, start):
        if len(content) >= LONG_DICTIONARY:
            return opening, content
    return None


def _any_dictionary(text: str, start: int) -> Optional[tuple[int, str]]:
    return next(_split_literals(text, start), None)


DICTIONARY_STRATEGIES = [_long_dictionary, _any_dictionary]


def _body_before_dictionary(text: str, body_start: int, dict_start: int) -> Optional[tuple[str, int, int]]:
    segment = text[body_start:dict_start]
    m = _ARGS_TAIL_RE.search(segment)
    if not m:
        return None
    return segment[:m.start()], int(m.group(1)), int(m.group(2))


def _body_first_args(text: str, body_start: int, _dict_start: int) -> Optional[tuple[str, int, int]]:
    m = _ARGS_RE.search(text, body_start)
    if not m:
        return None
    return text[body_start:m.start()], int(m.group(1)), int(m.group(2))


BODY_STRATEGIES = [_body_before_dictionary, _body_first_args]


def parse(text: str) -> Optional[PackedScriptBlock]:
    """Pull the four shim arguments out of `text`. None if it is not packed."""
    try:
        return _parse(text)
    except MalformedInput as e:
        log.debug(f"Not unpacking: {e}")
        return None


def _parse(text: str) -> PackedScriptBlock:
    sig = SIGNATURE_RE.search(text)
    if not sig:
        raise MalformedInput("packer signature not found")
    marker = _MARKER_RE.search(text, sig.end())
    if not marker:
        raise MalformedInput("packed body marker not found")
    body_start = marker.end()

    found = first_success(DICTIONARY_STRATEGIES, lambda s: s(text, body_start))
    if not found:
        raise MalformedInput("no .split('|') dictionary")
    dict_start, dict_raw = found.value

    args = first_success(BODY_STRATEGIES, lambda s: s(text, body_start, dict_start))
    if not args:
        raise MalformedInput("radix/count arguments not found")
    body, radix, count = args.value

    if not MIN_RADIX <= radix <= MAX_RADIX:
        raise MalformedInput(f"radix {radix} out of range")
    if count <= 0:
        raise MalformedInput(f"token count {count}")

    body = body.rstrip()
    if body.endswith(("'", '"')):
        body = body[:-1]
    body = body.replace("\\\\", "\\").replace("\\'", "'")

    return PackedScriptBlock(
        dictionary=dict_raw.split("|"),
        radix=radix,
        token_count=count,
        packed_body=body,
    )


# ──────────────────────────────
#  Substitution
# ──────────────────────────────
def unpack_block(block: PackedScriptBlock) -> str:
    text = block.packed_body
    # Superset of the words currently in `text`; lets us skip absent tokens
    present = set(_WORD_RE.findall(text))
    for i in range(block.token_count - 1, -1, -1):
        word = block.dictionary[i]
        if not word:
            continue
        token = base_encode(i, block.radix)
        if token not in present:
            continue
        text = re.sub(rf"\b{token}\b", lambda _m, w=word: w, text, flags=re.ASCII)
        present.update(_WORD_RE.findall(word))
    return text


def unpack(text: str) -> str:
    """Unpack packed JS. Returns the unpacked source or the original text."""
    try:
        block = parse(text)
        if block is None:
            return text
        return unpack_block(block)
    except Exception as e:
        log.warning(f"Unpacker failed, returning input: {e}")
        return text
