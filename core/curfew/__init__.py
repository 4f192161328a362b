"""
Voice curfew system for Discord bot
Removes users from voice channels during configured time windows and warns them beforehand.
"""

from .errors import CurfewError, ValidationError, RuleNotFoundError, ExternalActionFailure
from .interval import TimeOfDay, TimeInterval, in_range, is_near, WARNING_LEADS
from .clock import TimeProvider
from .store import RuleStore, UserRule, SuperRule, TargetChannel
from .platform import DiscordPlatform
from .logger import CurfewAuditLogger
from .enforcer import CurfewEnforcer
from .health import CurfewHealthChecker

__all__ = [
    'CurfewError',
    'ValidationError',
    'RuleNotFoundError',
    'ExternalActionFailure',
    'TimeOfDay',
    'TimeInterval',
    'in_range',
    'is_near',
    'WARNING_LEADS',
    'TimeProvider',
    'RuleStore',
    'UserRule',
    'SuperRule',
    'TargetChannel',
    'DiscordPlatform',
    'CurfewAuditLogger',
    'CurfewEnforcer',
    'CurfewHealthChecker'
]
