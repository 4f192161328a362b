import discord
from discord import app_commands
from discord.ext import commands, tasks
import logging
from typing import Optional
from core.permissions import moderator_only_interaction
from core.curfew import CurfewError
from core.shared_state import state

logger = logging.getLogger(__name__)

# Discord rejects messages longer than this
MAX_MESSAGE_LENGTH = 2000

HELP_TEXT = (
    "**Bot Commands:**\n"
    "/setuser userid, alias, notallowedtime, channelid, [timezone] - Set user disconnection settings.\n"
    "/removeuser userid, channelid - Remove user from disconnection settings.\n"
    "/setchannels channelids, aliases - Set channels to monitor with aliases.\n"
    "/userlist - List all users with settings.\n"
    "/addedchannels - List all monitored channels.\n"
    "/setlogchannel channelid - Set the logging channel.\n"
    "/superdc userid, alias, timerange, [timezone] - Disconnect user from any channel during a time range.\n"
    "/removesuperdc userid - Remove user from super disconnection settings.\n"
    "/addmod userid - Add a user as a bot moderator.\n"
    "timezone - An offset like +0530 or a name like Asia/Kolkata, default is {default_timezone}.\n"
    "/help - Display this help message."
)


def _truncate(text: str) -> str:
    if len(text) <= MAX_MESSAGE_LENGTH:
        return text
    return text[:MAX_MESSAGE_LENGTH - 3] + "..."


class Curfew(commands.Cog):
    """Voice channel curfews: rule commands, voice listener and the periodic sweep"""

    def __init__(self, bot, store, enforcer, time_provider, sweep_interval: int = 60):
        self.bot = bot
        self.store = store
        self.enforcer = enforcer
        self.time_provider = time_provider
        self.sweep_interval = sweep_interval

        logger.info("Curfew cog initialized")

    def _timezone_notice(self, descriptor: str) -> str:
        if self.time_provider.is_valid_timezone(descriptor):
            return ""
        return (f" Warning: timezone {descriptor} is not recognised, "
                f"{self.time_provider.default_timezone} will be used.")

    async def cog_load(self):
        self.curfew_sweep.change_interval(seconds=self.sweep_interval)
        self.curfew_sweep.start()

    def cog_unload(self):
        self.curfew_sweep.cancel()

    # ============== TRIGGERS ==============

    @commands.Cog.listener()
    async def on_voice_state_update(self, member: discord.Member, before: discord.VoiceState,
                                    after: discord.VoiceState):
        """Reactive check whenever a member joins, moves between or leaves voice channels"""
        before_id = before.channel.id if before.channel else None
        after_id = after.channel.id if after.channel else None
        if before_id == after_id:
            return

        try:
            await self.enforcer.on_membership_changed(
                str(member.id), str(after_id) if after_id is not None else None
            )
        except Exception as e:
            logger.error(f"Error in curfew voice check for {member.id}: {e}")

    @tasks.loop(seconds=60)
    async def curfew_sweep(self):
        """Background sweep enforcing rules and sending advance warnings"""
        await self.enforcer.on_tick()

    @curfew_sweep.before_loop
    async def before_curfew_sweep(self):
        await self.bot.wait_until_ready()
        logger.info(f"Curfew sweep initialized (every {self.sweep_interval}s)")

    # ============== RULE COMMANDS ==============

    @app_commands.command(name="setuser", description="Set a user with disconnection settings.")
    @app_commands.describe(
        userid="User ID",
        alias="User alias",
        notallowedtime="Not allowed time range (HH:MM-HH:MM)",
        channelid="Channel ID",
        timezone="Timezone offset (e.g., +0530)"
    )
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def setuser(self, interaction: discord.Interaction, userid: str, alias: str,
                      notallowedtime: str, channelid: str, timezone: Optional[str] = None):
        try:
            rule = self.store.set_user_rule(userid, alias, notallowedtime, channelid, timezone)
        except CurfewError as e:
            await interaction.response.send_message(str(e))
            return

        await interaction.response.send_message(
            f"User {rule.alias} set with not allowed time {rule.window} in channel {rule.channel_id} "
            f"with timezone offset {rule.timezone}. "
            f"Current user time: {self.time_provider.format_now(rule.timezone)}"
            f"{self._timezone_notice(rule.timezone)}"
        )

    @app_commands.command(name="removeuser", description="Remove a user from disconnection settings.")
    @app_commands.describe(userid="User ID", channelid="Channel ID")
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def removeuser(self, interaction: discord.Interaction, userid: str, channelid: str):
        try:
            rule = self.store.remove_user_rule(userid, channelid)
        except CurfewError as e:
            await interaction.response.send_message(str(e))
            return

        await interaction.response.send_message(f"User {rule.user_id} removed from channel {rule.channel_id}.")

    @app_commands.command(name="superdc", description="Disconnect a user from any channel during a time range.")
    @app_commands.describe(
        userid="User ID",
        alias="User alias",
        timerange="Time range (HH:MM-HH:MM)",
        timezone="Timezone offset (e.g., +0530)"
    )
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def superdc(self, interaction: discord.Interaction, userid: str, alias: str,
                      timerange: str, timezone: Optional[str] = None):
        try:
            rule = self.store.set_super_rule(userid, alias, timerange, timezone)
        except CurfewError as e:
            await interaction.response.send_message(str(e))
            return

        await interaction.response.send_message(
            f"User {rule.alias} set to be disconnected during {rule.window} "
            f"with timezone offset {rule.timezone}. "
            f"Current user time: {self.time_provider.format_now(rule.timezone)}"
            f"{self._timezone_notice(rule.timezone)}"
        )

    @app_commands.command(name="removesuperdc", description="Remove a user from super disconnection settings.")
    @app_commands.describe(userid="User ID")
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def removesuperdc(self, interaction: discord.Interaction, userid: str):
        try:
            rule = self.store.remove_super_rule(userid)
        except CurfewError as e:
            await interaction.response.send_message(str(e))
            return

        await interaction.response.send_message(f"User {rule.user_id} removed from super disconnection settings.")

    @app_commands.command(name="userlist", description="List all users with disconnection settings.")
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def userlist(self, interaction: discord.Interaction):
        lines = [
            f"{rule.alias} ({rule.user_id}): {rule.window} in channel {rule.channel_id} "
            f"(Timezone offset: {rule.timezone})"
            for rule in self.store.user_rules()
        ]
        lines += [
            f"{rule.alias} ({rule.user_id}): Super DC during {rule.window} (Timezone offset: {rule.timezone})"
            for rule in self.store.super_rules()
        ]

        user_list = "\n".join(lines) or "No users set."
        await interaction.response.send_message(_truncate(f"**User List:**\n{user_list}"))

    # ============== SETTINGS COMMANDS ==============

    @app_commands.command(name="setchannels", description="Set the list of channels to monitor.")
    @app_commands.describe(
        channelids="Comma-separated list of channel IDs",
        aliases="Comma-separated list of channel aliases"
    )
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def setchannels(self, interaction: discord.Interaction, channelids: str, aliases: str):
        try:
            channels = self.store.set_channels(channelids.split(','), aliases.split(','))
        except CurfewError as e:
            await interaction.response.send_message(str(e))
            return

        channel_text = ", ".join(f"{c.alias} ({c.channel_id})" for c in channels) or "none"
        await interaction.response.send_message(_truncate(f"Target channels set to: {channel_text}"))

    @app_commands.command(name="addedchannels", description="List all monitored channels.")
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def addedchannels(self, interaction: discord.Interaction):
        channel_list = "\n".join(f"{c.alias} ({c.channel_id})" for c in self.store.target_channels())
        await interaction.response.send_message(
            _truncate(f"**Monitored Channels:**\n{channel_list or 'No channels set.'}")
        )

    @app_commands.command(name="setlogchannel", description="Set the channel for logging bot actions.")
    @app_commands.describe(channelid="Channel ID")
    @app_commands.default_permissions(administrator=True)
    @moderator_only_interaction()
    async def setlogchannel(self, interaction: discord.Interaction, channelid: str):
        self.store.log_channel_id = channelid
        await interaction.response.send_message(f"Log channel set to: {self.store.log_channel_id}")

    @app_commands.command(name="addmod", description="Add a user as a bot moderator.")
    @app_commands.describe(userid="User ID")
    @app_commands.default_permissions(administrator=True)
    async def addmod(self, interaction: discord.Interaction, userid: str):
        userid = userid.strip()
        self.store.add_moderator(userid)
        await interaction.response.send_message(f"User {userid} added as a bot moderator.")

    @app_commands.command(name="help", description="Display help information about the bot.")
    async def help_command(self, interaction: discord.Interaction):
        await interaction.response.send_message(
            HELP_TEXT.format(default_timezone=self.store.default_timezone)
        )

    async def cog_app_command_error(self, interaction: discord.Interaction,
                                    error: app_commands.AppCommandError):
        """Fallback for unexpected errors; failed moderator checks have already replied"""
        if isinstance(error, app_commands.CheckFailure):
            return

        logger.error(f"Error in curfew command {interaction.command.name if interaction.command else '?'}: {error}")
        if not interaction.response.is_done():
            await interaction.response.send_message("❌ An error occurred. Please try again later.")


async def setup(bot):
    await bot.add_cog(Curfew(bot, state.store, state.enforcer, state.time_provider,
                             getattr(bot, 'sweep_interval', 60)))
