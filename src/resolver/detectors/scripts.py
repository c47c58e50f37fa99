"""
Script mining. Packed blocks go through the harvester; the document
itself is regex-scanned for literal stream URLs and player setup calls.
"""
from __future__ import annotations
import logging
import re

from ..base import DetectorContribution, MediaSourceCandidate, SourceTag
from ..decoders import b64decode
from ..errors import ProbeError
from ..harvester import harvest
from ..patterns import classify, find_urls, is_static_asset, is_stream_url, normalize_url, quality_label
from ..runner import register_detector
from ..session import PageHandle, evaluate

log = logging.getLogger("siphon.resolver.scripts")

SCRIPT = "() => document.documentElement.outerHTML"

# jwplayer/hls.js setup calls, where the URL often has no telltale extension
SETUP_PATTERNS = [
    re.compile(r"""\bfile\s*:\s*["']([^"']+)["']"""),
    re.compile(r"""\.loadSource\(\s*["']([^"']+)["']\s*\)"""),
    re.compile(r"""\b(?:source|src)\s*:\s*["']([^"']+\.(?:m3u8|mpd)[^"']*)["']"""),
]
_ATOB_RE = re.compile(r"""atob\(\s*["']([A-Za-z0-9+/=_-]{12,})["']\s*\)""")


def scan_scripts(html: str) -> list[MediaSourceCandidate]:
    candidates: list[MediaSourceCandidate] = []
    seen: set[str] = set()

    def add(raw: str, tag: SourceTag) -> None:
        url = normalize_url(raw)
        if not url.startswith("http") or url in seen or is_static_asset(url):
            return
        seen.add(url)
        candidates.append(MediaSourceCandidate(
            url=url,
            source_tag=tag,
            media_kind=classify(url),
            quality_label=quality_label(url),
        ))

    for url in harvest(html).stream_urls:
        add(url, SourceTag.PACKED_JS)

    for pattern in SETUP_PATTERNS:
        for m in pattern.finditer(html):
            add(m.group(1), SourceTag.SCRIPT_REGEX)
    for m in _ATOB_RE.finditer(html):
        decoded = b64decode(m.group(1))
        if decoded != m.group(1) and is_stream_url(decoded.strip()):
            add(decoded, SourceTag.SCRIPT_REGEX)
    for url in find_urls(html):
        if is_stream_url(url):
            add(url, SourceTag.SCRIPT_REGEX)
    return candidates


@register_detector
class ScriptDetector:
    id = "scripts"
    name = "Script regex mining"
    rank = 300

    async def probe(self, page: PageHandle) -> DetectorContribution:
        html = await evaluate(page, SCRIPT)
        if not isinstance(html, str):
            raise ProbeError(f"page source returned {type(html).__name__}")
        candidates = scan_scripts(html)
        log.debug(f"{len(candidates)} script candidate(s) from {len(html)} chars")
        return DetectorContribution(detector=self.id, candidates=candidates)
