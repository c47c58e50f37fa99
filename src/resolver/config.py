"""
Runtime settings, read once from the environment (and .env if present).
"""
from __future__ import annotations
import os
from dotenv import load_dotenv

load_dotenv()


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ── async budgets (seconds) ──────────────────
PROBE_TIMEOUT = _float("SIPHON_PROBE_TIMEOUT", 5.0)
TOTAL_TIMEOUT = _float("SIPHON_TOTAL_TIMEOUT", 15.0)
FETCH_TIMEOUT = _float("SIPHON_FETCH_TIMEOUT", 10.0)
PROXY = os.getenv("SIPHON_PROXY") or None

# ── AES defaults (hubstream-style hex API) ───
AES_KEY = os.getenv("SIPHON_AES_KEY", "kiemtienmua911ca")
AES_IVS = [
    iv.strip()
    for iv in os.getenv("SIPHON_AES_IVS", "1234567890oiuytr,0123456789abcdef").split(",")
    if iv.strip()
]

# ── packed JS harvesting ─────────────────────
PACKER_WINDOW = _int("SIPHON_PACKER_WINDOW", 15000)
MIN_UNPACKED_LENGTH = _int("SIPHON_MIN_UNPACKED", 100)
