"""
AES-CBC resolver for hex-encoded player APIs.

Some embed hosts (hubstream and friends) answer their video API with a hex
string: AES-128-CBC ciphertext under a key baked into the player, with
one of a handful of IVs that rotate between deployments. We try the IV
candidates in order and stop at the first one whose plaintext carries the
payload:

    {"source":"https:\\/\\/cdn...\\/master.m3u8", ...}
"""
from __future__ import annotations
import asyncio
import binascii
import json
import logging
import re
import unicodedata
from typing import Iterable, Optional, Sequence, Union

from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from . import config
from .base import DecryptionAttempt, DecryptionResult
from .chain import first_success
from .errors import DecryptionFailure
from .fetcher import Fetcher
from .patterns import is_stream_url, normalize_url

log = logging.getLogger("siphon.resolver.aes")

SOURCE_PATTERNS = [
    re.compile(r'"source"\s*:\s*"(?P<url>[^"]+)"'),
    re.compile(r'"file"\s*:\s*"(?P<url>[^"]+)"'),
    re.compile(r'"(?:hls|url|src|stream)"\s*:\s*"(?P<url>https?:[^"]+)"'),
    re.compile(r"(?P<url>https?:\\?/\\?/[^\s\"'<>]+)"),
]

_HEX32_RE = re.compile(r"^[0-9a-fA-F]{32}$")


def _key_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def _iv_bytes(value: Union[str, bytes]) -> bytes:
    """IVs come as 16-char text or 32-digit hex."""
    if isinstance(value, bytes):
        return value
    if len(value) == 32 and _HEX32_RE.match(value):
        return bytes.fromhex(value)
    return value.encode("utf-8")


def _has_control_chars(text: str) -> bool:
    return any(unicodedata.category(ch) == "Cc" and ch not in "\r\n\t" for ch in text)


def decrypt_hex(ciphertext_hex: str, key: Union[str, bytes], iv: Union[str, bytes]) -> str:
    """AES-CBC + PKCS7 decrypt of hex ciphertext. Raises DecryptionFailure."""
    try:
        data = bytes.fromhex("".join(ciphertext_hex.split()))
    except ValueError as e:
        raise DecryptionFailure(f"ciphertext is not hex: {e}") from e
    if not data or len(data) % 16:
        raise DecryptionFailure(f"ciphertext length {len(data)} is not a multiple of 16")

    key_b, iv_b = _key_bytes(key), _iv_bytes(iv)
    if len(key_b) not in (16, 24, 32):
        raise DecryptionFailure(f"key must be 16/24/32 bytes, got {len(key_b)}")
    if len(iv_b) != 16:
        raise DecryptionFailure(f"IV must be 16 bytes, got {len(iv_b)}")

    decryptor = Cipher(algorithms.AES(key_b), modes.CBC(iv_b)).decryptor()
    padded = decryptor.update(data) + decryptor.finalize()

    # Remove PKCS7 padding
    unpadder = sym_padding.PKCS7(128).unpadder()
    try:
        raw = unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptionFailure("bad padding") from e

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionFailure("plaintext is not UTF-8") from e
    if _has_control_chars(text):
        raise DecryptionFailure("plaintext has control characters")
    return text


def extract_url(plaintext: str, patterns: Sequence[re.Pattern] = SOURCE_PATTERNS) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(plaintext)
        if m:
            return normalize_url(m.group("url"))
    return None


def _carries_payload(plaintext: str, patterns: Sequence[re.Pattern]) -> bool:
    try:
        json.loads(plaintext)
        return True
    except ValueError:
        return extract_url(plaintext, patterns) is not None


def resolve(
    ciphertext_hex: str,
    key: Union[str, bytes, None] = None,
    ivs: Optional[Iterable[Union[str, bytes]]] = None,
    patterns: Sequence[re.Pattern] = SOURCE_PATTERNS,
) -> DecryptionResult:
    """Try each IV in order; first plaintext carrying a payload wins.

    A wrong CBC IV garbles only the first block and leaves the padding
    intact, so clean decryption alone does not pick the IV.
    """
    key = config.AES_KEY if key is None else key
    candidates = list(config.AES_IVS if ivs is None else ivs)

    def attempt(iv):
        plaintext = decrypt_hex(ciphertext_hex, key, iv)
        if not _carries_payload(plaintext, patterns):
            raise DecryptionFailure("plaintext is neither JSON nor carries a URL")
        return plaintext

    outcome = first_success(candidates, attempt, catch=(DecryptionFailure,))

    attempts = []
    for a in outcome.attempts:
        label = a.candidate.hex() if isinstance(a.candidate, bytes) else a.candidate
        attempts.append(DecryptionAttempt(
            iv=label,
            succeeded=a.ok,
            plaintext=a.value if a.ok else None,
            error=str(a.error) if a.error else None,
        ))

    if not outcome:
        log.warning(f"AES: all {len(candidates)} IV candidate(s) failed")
        return DecryptionResult(
            success=False,
            attempts=attempts,
            error=f"no IV candidate produced valid plaintext ({len(candidates)} tried)",
        )

    winner = attempts[-1]
    plaintext = outcome.value
    url = extract_url(plaintext, patterns)
    winner.extracted_url = url
    log.info(f"AES: decrypted with IV #{len(attempts)} ({winner.iv})")
    return DecryptionResult(
        success=True,
        iv=winner.iv,
        plaintext=plaintext,
        extracted_url=url,
        is_stream_url=bool(url and is_stream_url(url)),
        attempts=attempts,
    )


async def resolve_remote(
    url: str,
    fetcher: Fetcher,
    key: Union[str, bytes, None] = None,
    ivs: Optional[Iterable[Union[str, bytes]]] = None,
    *,
    timeout: Optional[float] = None,
    referer: Optional[str] = None,
    headers: Optional[dict] = None,
) -> DecryptionResult:
    """Fetch hex ciphertext from `url`, then resolve it."""
    timeout = config.FETCH_TIMEOUT if timeout is None else timeout
    try:
        body = await asyncio.wait_for(fetcher.fetch_text(url, referer=referer, headers=headers), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning(f"AES: ciphertext fetch timed out after {timeout}s: {url}")
        return DecryptionResult(success=False, error="timeout")
    except Exception as e:
        log.warning(f"AES: ciphertext fetch failed: {e}")
        return DecryptionResult(success=False, error=f"fetch failed: {e}")

    hex_body = body.strip().strip('"')
    try:
        binascii.unhexlify("".join(hex_body.split()))
    except (binascii.Error, ValueError):
        return DecryptionResult(success=False, error="response is not hex ciphertext")
    return resolve(hex_body, key, ivs)
