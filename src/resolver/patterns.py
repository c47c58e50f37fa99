"""
URL mining and classification shared by the harvester, the detectors and
the AES resolver.
"""
from __future__ import annotations
import html
import re
from typing import Optional
from urllib.parse import urlsplit

from .base import MediaKind

URL_RE = re.compile(r"https?://[^\s\"'<>\\`|]+", re.IGNORECASE)

# Extensions seen on stream paths
MANIFEST_EXTS = {"m3u8", "mpd", "f4m", "ism"}
SEGMENT_EXTS = {"ts", "m4s"}
FILE_EXTS = {"mp4", "webm", "mkv", "flv", "m4v", "mov", "avi", "ogv", "mp3", "m4a", "aac", "ogg", "oga"}
STREAM_EXTS = MANIFEST_EXTS | SEGMENT_EXTS | FILE_EXTS

# Path fragments stream hosts use on extension-less URLs
STREAM_FRAGMENTS = ("/hls/", "/dash/", "/manifest", "/playlist", "/master", "/videoplayback")
# `stream` only as a whole path segment: /stream/..., or /stream at the end
_STREAM_SEGMENT_RE = re.compile(r"/stream(?:/|$)")

# Never media, even when the path happens to contain a stream fragment
STATIC_ASSET_EXTS = {
    "js", "mjs", "css", "map", "html", "htm",
    "png", "jpg", "jpeg", "gif", "svg", "ico", "webp", "avif", "bmp",
    "woff", "woff2", "ttf", "otf", "eot",
    "vtt", "srt",
}

EPHEMERAL_SCHEMES = ("blob:", "mediasource:", "data:")

_MIME_FORMATS = {
    "application/x-mpegurl": "hls",
    "application/vnd.apple.mpegurl": "hls",
    "application/dash+xml": "dash",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
}
_EXT_FORMATS = {"m3u8": "hls", "mpd": "dash", "f4m": "hds", "ism": "smooth"}

_QUALITY_RE = re.compile(r"(?<![0-9])(2160|1440|1080|720|480|360|240|144)[pP](?![a-zA-Z0-9])")
_QUALITY_WORDS = {"4k": "2160p", "uhd": "2160p", "fhd": "1080p", "hd": "720p", "sd": "480p"}


def normalize_url(url: str) -> str:
    """Undo JSON/HTML escaping and drop trailing punctuation picked up by regexes."""
    url = html.unescape(url.strip()).replace("\\/", "/").replace("\\u0026", "&")
    return url.rstrip(").,;]}")


def _path(url: str) -> str:
    try:
        return urlsplit(url).path
    except ValueError:
        return ""


def path_extension(url: str) -> str:
    path = _path(url)
    last = path.rsplit("/", 1)[-1]
    if "." not in last:
        return ""
    return last.rsplit(".", 1)[-1].lower()


def is_ephemeral(url: str) -> bool:
    return url.strip().lower().startswith(EPHEMERAL_SCHEMES)


def is_static_asset(url: str) -> bool:
    return path_extension(url) in STATIC_ASSET_EXTS


def is_stream_url(url: str) -> bool:
    if not url or is_ephemeral(url) or is_static_asset(url):
        return False
    if path_extension(url) in STREAM_EXTS:
        return True
    path = _path(url).lower()
    return any(frag in path for frag in STREAM_FRAGMENTS) or bool(_STREAM_SEGMENT_RE.search(path))


def classify(url: str, *, variant: bool = False) -> MediaKind:
    ext = path_extension(url)
    if ext in MANIFEST_EXTS:
        return MediaKind.MANIFEST
    if ext in SEGMENT_EXTS:
        return MediaKind.SEGMENT
    if variant:
        return MediaKind.QUALITY_VARIANT
    if ext in FILE_EXTS:
        return MediaKind.PRIMARY
    path = _path(url).lower()
    if any(frag in path for frag in ("/manifest", "/playlist", "/master")):
        return MediaKind.MANIFEST
    return MediaKind.UNKNOWN


def guess_format(url: str, mime_type: Optional[str] = None) -> str:
    if mime_type:
        fmt = _MIME_FORMATS.get(mime_type.split(";")[0].strip().lower())
        if fmt:
            return fmt
    ext = path_extension(url)
    if ext in _EXT_FORMATS:
        return _EXT_FORMATS[ext]
    if ext in STREAM_EXTS:
        return ext
    return "unknown"


def quality_label(url: str = "", label: Optional[str] = None, height: Optional[int] = None) -> Optional[str]:
    """Best-effort quality label from a player label, a frame height or the URL."""
    if label:
        text = str(label).strip()
        m = _QUALITY_RE.search(text)
        if m:
            return f"{m.group(1)}p"
        if text.isdigit():
            return f"{text}p"
        word = _QUALITY_WORDS.get(text.lower())
        if word:
            return word
        return text or None
    if height:
        try:
            return f"{int(height)}p"
        except (TypeError, ValueError):
            pass
    m = _QUALITY_RE.search(url)
    return f"{m.group(1)}p" if m else None


def find_urls(text: str) -> list[str]:
    """All http(s) URLs in `text`, normalized, deduped, first-seen order."""
    seen: dict[str, None] = {}
    for raw in URL_RE.findall(text.replace("\\/", "/")):
        url = normalize_url(raw)
        if len(url) > len("https://") and url not in seen:
            seen[url] = None
    return list(seen)
