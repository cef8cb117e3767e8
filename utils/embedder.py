"""
Standardized Discord embed builder for consistent bot responses.
"""

from __future__ import annotations

import datetime
from typing import List, Optional, Tuple

import discord

from config.constants import (
    BOT_COLOR,
    BOT_ERROR_COLOR,
    BOT_NAME,
    BOT_WARN_COLOR,
)

Field = Tuple[str, str, bool]


class Embedder:
    """Factory for creating consistent, branded Discord embeds."""

    @staticmethod
    def _base(
        title: str,
        description: str,
        color: int,
        *,
        footer: Optional[str] = None,
        fields: Optional[List[Field]] = None,
    ) -> discord.Embed:
        embed = discord.Embed(
            title=title,
            description=description,
            color=color,
            timestamp=datetime.datetime.now(datetime.timezone.utc),
        )
        embed.set_footer(text=footer or f"🎵 {BOT_NAME}")
        for name, value, inline in (fields or []):
            embed.add_field(name=name, value=value, inline=inline)
        return embed

    # ── Standard Embed Types ─────────────────────────────────────────

    @classmethod
    def standard(
        cls,
        title: str,
        description: str = "",
        *,
        color: int = BOT_COLOR,
        fields: Optional[List[Field]] = None,
        footer: Optional[str] = None,
        thumbnail: Optional[str] = None,
    ) -> discord.Embed:
        """Create a standard themed embed."""
        embed = cls._base(title, description, color, footer=footer, fields=fields)
        if thumbnail:
            embed.set_thumbnail(url=thumbnail)
        return embed

    @classmethod
    def error(
        cls,
        title: str,
        description: str,
        *,
        fields: Optional[List[Field]] = None,
        footer: Optional[str] = None,
    ) -> discord.Embed:
        return cls._base(
            f"❌ {title}", description, BOT_ERROR_COLOR, footer=footer, fields=fields
        )

    @classmethod
    def warning(
        cls,
        title: str,
        description: str,
        *,
        fields: Optional[List[Field]] = None,
        footer: Optional[str] = None,
    ) -> discord.Embed:
        return cls._base(
            f"⚠️ {title}", description, BOT_WARN_COLOR, footer=footer, fields=fields
        )

    # ── Specialized Embeds ───────────────────────────────────────────

    @classmethod
    def rate_limited(cls, retry_after: float) -> discord.Embed:
        """Create a cooldown warning embed."""
        return cls.warning(
            "Slow Down",
            f"This server is sending requests too fast.\nPlease wait **{retry_after:.1f}s** before trying again.",
        )

    @classmethod
    def service_busy(cls) -> discord.Embed:
        """Upstream kept rate limiting us after every retry."""
        return cls.warning(
            "Service Busy",
            "The music service is rate limiting requests right now.\nPlease try again in a minute.",
        )
