import logging
import discord
from discord.ext import commands
from dotenv import load_dotenv

from config import Config
from core.curfew import (
    RuleStore, TimeProvider, DiscordPlatform, CurfewAuditLogger,
    CurfewEnforcer, CurfewHealthChecker
)
from core.shared_state import state

# Load environment variables
load_dotenv()
config = Config()

# Setup logging first
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format='[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def create_bot():
    """Create and configure the Discord bot"""

    intents = discord.Intents.default()
    intents.members = True
    intents.guilds = True
    intents.voice_states = True

    bot = commands.Bot(
        command_prefix=commands.when_mentioned,
        intents=intents,
        help_command=None
    )
    bot_config = config.get_bot_config()
    bot.sweep_interval = bot_config['sweep_interval']

    return bot, bot_config['token']


def build_curfew(bot):
    """Wire the curfew components together and publish them for the backend"""
    bot_config = config.get_bot_config()
    time_provider = TimeProvider(default_timezone=bot_config['default_timezone'])
    store = RuleStore(default_timezone=bot_config['default_timezone'])
    platform = DiscordPlatform(bot)
    audit_logger = CurfewAuditLogger(store, platform)
    enforcer = CurfewEnforcer(store, time_provider, platform, audit_logger)
    health_checker = CurfewHealthChecker(store, enforcer, bot_config['sweep_interval'])

    state.set_bot(bot)
    state.set_curfew(store, time_provider, enforcer, audit_logger, health_checker)
    return enforcer


async def run_bot():
    """Async function to run the bot (called by start.py)"""
    config.validate()

    logger.info("=" * 50)
    logger.info(f"Voice Curfew Bot Starting ({config.environment})...")
    logger.info("=" * 50)

    bot, token = create_bot()
    build_curfew(bot)

    @bot.event
    async def on_ready():
        logger.info(f"Bot logged in as {bot.user.name} (ID: {bot.user.id})")
        logger.info(f"Connected to {len(bot.guilds)} guild(s)")

        try:
            synced = await bot.tree.sync()
            logger.info(f"✓ Synced {len(synced)} slash commands")
        except Exception as e:
            logger.error(f"✗ Failed to sync slash commands: {e}")

        logger.info("=" * 50)
        logger.info("Bot is ready and online!")
        logger.info("=" * 50)

    async with bot:
        await bot.load_extension('cogs.curfew')
        logger.info("✓ Curfew cog loaded")
        await bot.start(token)
