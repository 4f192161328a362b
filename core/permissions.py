"""
Permission checking utilities for the bot
"""

import discord

def is_curfew_moderator(interaction, store) -> bool:
    """Check if the invoking user is in the bot moderator set"""
    return store.is_moderator(str(interaction.user.id))


def moderator_only_interaction():
    """Decorator for slash commands restricted to bot moderators

    The command must be bound to a cog exposing the rule store as ``store``.
    """
    async def predicate(interaction):
        store = interaction.command.binding.store
        if not is_curfew_moderator(interaction, store):
            await interaction.response.send_message("You do not have permission to use this command.")
            return False
        return True
    return discord.app_commands.check(predicate)
