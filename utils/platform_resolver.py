"""
Music platform URL detection.

``w!play`` only accepts song titles, so any query that looks like a link
is turned away before it reaches the playback engine.

Recognised platforms:
    • YouTube          (youtube.com / youtu.be)
    • Spotify          (spotify.com / open.spotify.com)
    • SoundCloud       (soundcloud.com)
    • Apple Music      (music.apple.com)
    • Deezer           (deezer.com)
    • Tidal            (tidal.com)
    • Pandora          (pandora.com)
    • anything else with an http(s) scheme
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

# =====================================================================
#  URL regex patterns
# =====================================================================

PLATFORM_PATTERNS = [
    re.compile(r"^https?://(www\.)?(youtube\.com|youtu\.be)", re.IGNORECASE),
    re.compile(r"^https?://(www\.|open\.)?spotify\.com", re.IGNORECASE),
    re.compile(r"^https?://(www\.)?soundcloud\.com", re.IGNORECASE),
    re.compile(r"^https?://(www\.)?music\.apple\.com", re.IGNORECASE),
    re.compile(r"^https?://(www\.)?deezer\.com", re.IGNORECASE),
    re.compile(r"^https?://(www\.|listen\.)?tidal\.com", re.IGNORECASE),
    re.compile(r"^https?://(www\.)?pandora\.com", re.IGNORECASE),
]

# Bare links such as ``youtu.be/abc`` or ``spotify.com/track/...``
BARE_LINK_PATTERN = re.compile(
    r"^(www\.)?(youtube\.com|youtu\.be|(open\.)?spotify\.com|soundcloud\.com"
    r"|music\.apple\.com|deezer\.com|tidal\.com|pandora\.com)/",
    re.IGNORECASE,
)

GENERIC_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def _is_url(text: str) -> bool:
    """True if *text* parses as an absolute URL with a scheme and host."""
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def is_music_url(text: str) -> bool:
    """Check if the given query is (or starts with) a link."""
    text = text.strip()
    if not text:
        return False
    return (
        any(p.search(text) for p in PLATFORM_PATTERNS)
        or bool(BARE_LINK_PATTERN.search(text))
        or bool(GENERIC_URL_PATTERN.search(text))
        or _is_url(text)
    )
