"""
Discord-backed implementation of the actions the enforcer needs:
voice membership lookup, voice disconnect, direct messages and log posts.
"""

import logging
from typing import Optional

import discord

from .errors import ExternalActionFailure

logger = logging.getLogger(__name__)


def _snowflake(value: str, kind: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ExternalActionFailure(f"Invalid Discord {kind} id: {value!r}")


class DiscordPlatform:
    """Adapter between the curfew enforcer and a discord.py bot"""

    def __init__(self, bot):
        self.bot = bot

    def _find_member(self, user_id: str) -> Optional[discord.Member]:
        """Find the member across all guild caches, preferring one that is in voice"""
        try:
            member_id = int(user_id)
        except (TypeError, ValueError):
            return None

        found = None
        for guild in self.bot.guilds:
            member = guild.get_member(member_id)
            if member is None:
                continue
            if member.voice and member.voice.channel:
                return member
            found = found or member
        return found

    async def resolve_membership(self, user_id: str) -> Optional[str]:
        """Return the id of the voice channel the user is in, or None"""
        member = self._find_member(user_id)
        if member and member.voice and member.voice.channel:
            return str(member.voice.channel.id)
        return None

    async def remove_from_channel(self, user_id: str, reason: str = None):
        member = self._find_member(user_id)
        if member is None or not (member.voice and member.voice.channel):
            raise ExternalActionFailure(f"User {user_id} is not in a voice channel")

        try:
            await member.move_to(None, reason=reason or "Voice curfew")
        except discord.HTTPException as e:
            raise ExternalActionFailure(f"Cannot disconnect user {user_id}: {e}") from e

    async def send_direct_message(self, user_id: str, text: str):
        member_id = _snowflake(user_id, 'user')
        user = self._find_member(user_id) or self.bot.get_user(member_id)

        try:
            if user is None:
                user = await self.bot.fetch_user(member_id)
            await user.send(text)
        except discord.HTTPException as e:
            raise ExternalActionFailure(f"Cannot DM user {user_id}: {e}") from e

    async def post_to_channel(self, channel_id: str, text: str):
        channel = self.bot.get_channel(_snowflake(channel_id, 'channel'))
        if channel is None:
            raise ExternalActionFailure(f"Log channel {channel_id} not found")

        try:
            await channel.send(text)
        except discord.HTTPException as e:
            raise ExternalActionFailure(f"Cannot post to channel {channel_id}: {e}") from e
