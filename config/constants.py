"""
Bot-wide constants and default values.
"""

# ── Bot Identity ─────────────────────────────────────────────────────
BOT_NAME = "Wave"
BOT_COLOR = 0x9B59B6  # Purple theme
BOT_ERROR_COLOR = 0xFF6B6B  # Coral
BOT_SUCCESS_COLOR = 0x4ECDC4  # Teal
BOT_INFO_COLOR = 0x3498DB  # Blue
BOT_WARN_COLOR = 0xFFD93D  # Yellow
BOT_MUTED_COLOR = 0x95A5A6  # Grey
DEFAULT_PREFIX = "w!"

# ── Admission ────────────────────────────────────────────────────────
ADMISSION_COOLDOWN = 5.0  # seconds between admitted requests per guild
ADMISSION_CACHE_SIZE = 10_000  # max guilds tracked at once
ADMISSION_SWEEP_MINUTES = 10  # background eviction interval

# ── Retry / Backoff ──────────────────────────────────────────────────
RETRY_MAX_RETRIES = 3
RETRY_BASE_DELAY = 2.0  # seconds, first backoff wait
RETRY_MAX_DELAY = 30.0  # seconds, backoff cap
RETRY_BACKOFF_FACTOR = 2.0
PLAYBACK_TIMEOUT = 120.0  # seconds for one admitted request, 0 = unbounded

# ── Music ────────────────────────────────────────────────────────────
DEFAULT_VOLUME = 50  # percent
EMPTY_LEAVE_DELAY = 30  # seconds alone in VC before leaving
QUEUE_DISPLAY_LIMIT = 10  # upcoming songs shown by w!queue
MAX_ERROR_SNIPPET = 100  # chars of engine error shown to users
MAX_STREAM_ERROR = 1900  # chars of a streaming error shown in chat
BRAND = "Made by @developer_vanny()"
