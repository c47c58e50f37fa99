"""
Find every packed script in a page, unpack it, and mine the result for
stream URLs.

Block location is a two-step fallback: first the precise span from the
packer signature to its closing `.split('|')))`, then (only if that found
nothing) a fixed-size window after each raw signature.
"""
from __future__ import annotations
import logging
import re

from . import config, unpacker
from .base import HarvestResult
from .chain import first_success
from .patterns import find_urls, is_stream_url

log = logging.getLogger("siphon.resolver.harvester")

_SIGNATURE_RE = re.compile(r"(?:eval\s*\(\s*)?" + unpacker.SIGNATURE_RE.pattern)
_RAW_SIGNATURE = "function(p,a,c,k,e,"
_BLOCK_END_RE = re.compile(
    r"\.split\(\s*(['\"])\|\1\s*\)(?:\s*,\s*0\s*,\s*\{\s*\})?\s*\)\s*\)"
)
WINDOW_LEAD = 200


def _precise_blocks(html: str) -> list[str]:
    blocks = []
    pos = 0
    while True:
        sig = _SIGNATURE_RE.search(html, pos)
        if not sig:
            break
        end = _BLOCK_END_RE.search(html, sig.end())
        if not end:
            break
        blocks.append(html[sig.start():end.end()])
        pos = end.end()
    return blocks


def _windowed_blocks(html: str) -> list[str]:
    blocks = []
    pos = 0
    while True:
        idx = html.find(_RAW_SIGNATURE, pos)
        if idx == -1:
            break
        start = max(0, idx - WINDOW_LEAD)
        blocks.append(html[start:idx + config.PACKER_WINDOW])
        pos = idx + len(_RAW_SIGNATURE)
    return blocks


BLOCK_STRATEGIES = [_precise_blocks, _windowed_blocks]


def find_blocks(html: str) -> list[str]:
    """Candidate packer blocks, precise spans first, windows as a fallback."""
    found = first_success(BLOCK_STRATEGIES, lambda s: s(html) or None)
    if not found:
        return []
    if found.winner.candidate is _windowed_blocks:
        log.info(f"Precise packer boundaries not found, using {len(found.value)} window(s)")
    return found.value


def harvest(html: str) -> HarvestResult:
    result = HarvestResult()
    if not html or not unpacker.detect(html):
        return result

    urls: dict[str, None] = {}
    for block in find_blocks(html):
        unpacked = unpacker.unpack(block)
        # An unchanged or tiny result is a failed unpack
        if unpacked == block or len(unpacked) <= config.MIN_UNPACKED_LENGTH:
            continue
        result.unpacked_scripts.append(unpacked)
        for url in find_urls(unpacked):
            urls.setdefault(url, None)

    result.extracted_urls = list(urls)
    result.stream_urls = [u for u in result.extracted_urls if is_stream_url(u)]
    if result.unpacked_scripts:
        log.info(
            f"Unpacked {len(result.unpacked_scripts)} script(s), "
            f"{len(result.stream_urls)} stream URL(s)"
        )
    return result
