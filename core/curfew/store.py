"""
In-memory rule store for voice curfews.

Holds channel-scoped user rules, channel-agnostic super rules, the monitored
channel list, the moderator set and the optional log channel. Nothing here is
persisted: the store is created empty at startup and discarded on exit.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .clock import DEFAULT_TIMEZONE
from .errors import RuleNotFoundError, ValidationError
from .interval import TimeInterval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRule:
    user_id: str
    alias: str
    window: TimeInterval
    channel_id: str
    timezone: str


@dataclass(frozen=True)
class SuperRule:
    user_id: str
    alias: str
    window: TimeInterval
    timezone: str


@dataclass(frozen=True)
class TargetChannel:
    channel_id: str
    alias: str


class RuleStore:
    """Thread-safe container for curfew rules and related settings"""

    def __init__(self, default_timezone: str = DEFAULT_TIMEZONE):
        self.default_timezone = default_timezone
        self._lock = threading.RLock()
        self._user_rules: Dict[str, UserRule] = {}
        self._super_rules: Dict[str, SuperRule] = {}
        self._target_channels: Tuple[TargetChannel, ...] = ()
        self._moderators = set()
        self._log_channel_id: Optional[str] = None

    # ============== USER RULES ==============

    def set_user_rule(self, user_id: str, alias: str, interval: str, channel_id: str,
                      timezone: str = None) -> UserRule:
        """Create or replace the channel-scoped rule for a user"""
        rule = UserRule(
            user_id=str(user_id).strip(),
            alias=alias.strip(),
            window=TimeInterval.parse(interval.strip()),
            channel_id=str(channel_id).strip(),
            timezone=(timezone or self.default_timezone).strip()
        )

        with self._lock:
            replaced = rule.user_id in self._user_rules
            self._user_rules[rule.user_id] = rule

        logger.info(f"{'Replaced' if replaced else 'Set'} user rule for {rule.alias} ({rule.user_id}): "
                    f"{rule.window} in channel {rule.channel_id} ({rule.timezone})")
        return rule

    def remove_user_rule(self, user_id: str, channel_id: str) -> UserRule:
        """Remove a user rule, only if it targets the given channel"""
        user_id, channel_id = str(user_id).strip(), str(channel_id).strip()

        with self._lock:
            rule = self._user_rules.get(user_id)
            if rule is None or rule.channel_id != channel_id:
                raise RuleNotFoundError(f"User {user_id} not found in channel {channel_id}.")
            del self._user_rules[user_id]

        logger.info(f"Removed user rule for {rule.alias} ({user_id}) in channel {channel_id}")
        return rule

    def get_user_rule(self, user_id: str) -> Optional[UserRule]:
        with self._lock:
            return self._user_rules.get(str(user_id))

    def user_rules(self) -> List[UserRule]:
        with self._lock:
            return list(self._user_rules.values())

    # ============== SUPER RULES ==============

    def set_super_rule(self, user_id: str, alias: str, interval: str,
                       timezone: str = None) -> SuperRule:
        """Create or replace the any-channel rule for a user"""
        rule = SuperRule(
            user_id=str(user_id).strip(),
            alias=alias.strip(),
            window=TimeInterval.parse(interval.strip()),
            timezone=(timezone or self.default_timezone).strip()
        )

        with self._lock:
            self._super_rules[rule.user_id] = rule

        logger.info(f"Set super rule for {rule.alias} ({rule.user_id}): {rule.window} ({rule.timezone})")
        return rule

    def remove_super_rule(self, user_id: str) -> SuperRule:
        user_id = str(user_id).strip()

        with self._lock:
            rule = self._super_rules.pop(user_id, None)

        if rule is None:
            raise RuleNotFoundError(f"User {user_id} not found in super disconnection settings.")

        logger.info(f"Removed super rule for {rule.alias} ({user_id})")
        return rule

    def get_super_rule(self, user_id: str) -> Optional[SuperRule]:
        with self._lock:
            return self._super_rules.get(str(user_id))

    def super_rules(self) -> List[SuperRule]:
        with self._lock:
            return list(self._super_rules.values())

    # ============== CHANNELS & SETTINGS ==============

    def set_channels(self, channel_ids: List[str], aliases: List[str]) -> Tuple[TargetChannel, ...]:
        """Replace the monitored channel list; blank entries (e.g. trailing commas) are dropped"""
        channel_ids = [str(channel_id).strip() for channel_id in channel_ids if str(channel_id).strip()]
        aliases = [alias.strip() for alias in aliases if alias.strip()]
        if len(channel_ids) != len(aliases):
            raise ValidationError("The number of channel IDs and aliases must match.")

        channels = tuple(
            TargetChannel(channel_id=channel_id, alias=alias)
            for channel_id, alias in zip(channel_ids, aliases)
        )

        with self._lock:
            self._target_channels = channels

        logger.info(f"Target channels set: {', '.join(c.channel_id for c in channels) or 'none'}")
        return channels

    def target_channels(self) -> List[TargetChannel]:
        with self._lock:
            return list(self._target_channels)

    def add_moderator(self, user_id: str):
        with self._lock:
            self._moderators.add(str(user_id).strip())

    def is_moderator(self, user_id: str) -> bool:
        with self._lock:
            return str(user_id) in self._moderators

    def moderators(self) -> List[str]:
        with self._lock:
            return sorted(self._moderators)

    @property
    def log_channel_id(self) -> Optional[str]:
        with self._lock:
            return self._log_channel_id

    @log_channel_id.setter
    def log_channel_id(self, channel_id: Optional[str]):
        with self._lock:
            self._log_channel_id = str(channel_id).strip() if channel_id else None

    def stats(self) -> Dict:
        """Point-in-time counts for health reporting"""
        with self._lock:
            return {
                'user_rules': len(self._user_rules),
                'super_rules': len(self._super_rules),
                'target_channels': len(self._target_channels),
                'moderators': len(self._moderators),
                'log_channel_configured': self._log_channel_id is not None
            }
