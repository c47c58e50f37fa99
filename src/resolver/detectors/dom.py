"""
Raw DOM media scan: <video>, <audio>, <source>, the data-* attributes
lazy players stash their file in, and <a href> links straight to a media
file. blob:/mediasource: URLs are dropped; they only exist inside this
page's MediaSource and cannot be fetched.
"""
from __future__ import annotations
import logging
from typing import Any, Iterable

from ..base import DetectorContribution, MediaSourceCandidate, SourceTag
from ..errors import ProbeError
from ..patterns import (
    STREAM_EXTS, classify, is_ephemeral, is_stream_url, normalize_url, path_extension, quality_label,
)
from ..runner import register_detector
from ..session import PageHandle, evaluate

log = logging.getLogger("siphon.resolver.dom")

DATA_ATTRS = ["data-src", "data-video", "data-file", "data-stream", "data-link"]

SCRIPT = """(attrs) => {
  const out = [];
  const push = (src, tag, type, label) => {
    if (src) out.push({src: String(src), tag, type: type || null, label: label || null});
  };
  document.querySelectorAll('video, audio, source').forEach(el => {
    push(el.currentSrc || el.src || el.getAttribute('src'), el.tagName.toLowerCase(),
         el.getAttribute('type'), el.getAttribute('label') || el.getAttribute('size') || el.getAttribute('res'));
  });
  // direct links; dom_candidates keeps only media extensions
  document.querySelectorAll('a[href]').forEach(el => push(el.href, 'a', el.getAttribute('type'), null));
  const selector = attrs.map(a => '[' + a + ']').join(', ');
  document.querySelectorAll(selector).forEach(el => {
    attrs.forEach(a => push(el.getAttribute(a), 'data-attr', null, null));
  });
  return out;
}"""


def dom_candidates(elements: Iterable[Any]) -> list[MediaSourceCandidate]:
    candidates = []
    seen = set()
    for el in elements:
        if not isinstance(el, dict) or not isinstance(el.get("src"), str):
            continue
        url = normalize_url(el["src"])
        if is_ephemeral(url) or not url.startswith("http") or url in seen:
            continue
        # data-src is also the lazy-image convention; demand a media-looking URL there
        if el.get("tag") == "data-attr" and not is_stream_url(url):
            continue
        if el.get("tag") == "a" and path_extension(url) not in STREAM_EXTS:
            continue
        seen.add(url)
        candidates.append(MediaSourceCandidate(
            url=url,
            source_tag=SourceTag.DOM,
            media_kind=classify(url),
            quality_label=quality_label(url, el.get("label")),
            mime_type=el.get("type") or None,
        ))
    return candidates


@register_detector
class DomDetector:
    id = "dom"
    name = "DOM media scan"
    rank = 400

    async def probe(self, page: PageHandle) -> DetectorContribution:
        elements = await evaluate(page, SCRIPT, DATA_ATTRS)
        if not isinstance(elements, list):
            raise ProbeError(f"dom scan returned {type(elements).__name__}")
        candidates = dom_candidates(elements)
        log.debug(f"{len(elements)} media element(s), {len(candidates)} usable")
        return DetectorContribution(detector=self.id, candidates=candidates)
