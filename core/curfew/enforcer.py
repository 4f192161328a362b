"""
Voice curfew enforcement.

Two entry points share the rule store and the pure interval checks:

- on_membership_changed: reactive check when a user's voice channel changes
- on_tick: proactive sweep over every rule, run once per timer tick

Each rule is evaluated independently; a failure on one rule is logged and
counted but never stops the rest of the sweep.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

from .errors import ExternalActionFailure
from .interval import WARNING_LEADS, in_range, is_near

logger = logging.getLogger(__name__)

WARNING_MESSAGE = "You will be disconnected in {minutes} minutes."


class CurfewEnforcer:
    """Evaluates curfew rules against the current time and applies the results"""

    def __init__(self, store, time_provider, platform, audit_logger):
        self.store = store
        self.time_provider = time_provider
        self.platform = platform
        self.audit_logger = audit_logger
        self._sweep_lock = asyncio.Lock()
        self.last_sweep: Optional[Dict] = None
        self.skipped_ticks = 0

    @property
    def sweep_running(self) -> bool:
        return self._sweep_lock.locked()

    # ============== REACTIVE TRIGGER ==============

    async def on_membership_changed(self, user_id: str, channel_id: Optional[str]) -> Dict:
        """Check a user who just joined or moved to channel_id (None when leaving voice)"""
        user_id = str(user_id)
        result = {'removed': 0, 'errors': 0}

        if channel_id is None:
            return result
        channel_id = str(channel_id)

        rule = self.store.get_user_rule(user_id)
        if rule and rule.channel_id == channel_id:
            try:
                current = self.time_provider.now(rule.timezone)
                if in_range(current, rule.window):
                    await self._disconnect(
                        user_id, 'disconnect',
                        f"Disconnected {rule.alias} ({user_id}) from channel {channel_id}.",
                        result
                    )
            except Exception as e:
                logger.exception(f"Error checking user rule for {user_id}: {e}")
                result['errors'] += 1

        super_rule = self.store.get_super_rule(user_id)
        if super_rule:
            try:
                current = self.time_provider.now(super_rule.timezone)
                if in_range(current, super_rule.window):
                    await self._disconnect(
                        user_id, 'super_disconnect',
                        f"Super disconnected {super_rule.alias} ({user_id}) from any channel.",
                        result
                    )
            except Exception as e:
                logger.exception(f"Error checking super rule for {user_id}: {e}")
                result['errors'] += 1

        return result

    # ============== PROACTIVE SWEEP ==============

    async def on_tick(self) -> Optional[Dict]:
        """Run one sweep over all rules; skipped if a sweep is already in flight"""
        if self._sweep_lock.locked():
            self.skipped_ticks += 1
            logger.warning("Previous curfew sweep still running, skipping this tick")
            return None

        async with self._sweep_lock:
            summary = {
                'processed': 0,
                'removed': 0,
                'errors': 0,
                'started_at': datetime.now().isoformat(),
                'finished_at': None
            }
            for minutes in WARNING_LEADS:
                summary[f'warned_{minutes}'] = 0

            for rule in self.store.user_rules():
                try:
                    await self._sweep_user_rule(rule, summary)
                except Exception as e:
                    logger.exception(f"Error processing user rule for {rule.user_id}: {e}")
                    summary['errors'] += 1
                summary['processed'] += 1

            for rule in self.store.super_rules():
                try:
                    await self._sweep_super_rule(rule, summary)
                except Exception as e:
                    logger.exception(f"Error processing super rule for {rule.user_id}: {e}")
                    summary['errors'] += 1
                summary['processed'] += 1

            summary['finished_at'] = datetime.now().isoformat()
            self.last_sweep = summary

        if summary['removed'] or summary['errors']:
            logger.info(f"Curfew sweep: {summary['processed']} rules, {summary['removed']} removed, "
                        f"{summary['errors']} errors")
        else:
            logger.debug(f"Curfew sweep: {summary['processed']} rules, nothing to enforce")

        return summary

    async def _sweep_user_rule(self, rule, summary: Dict):
        current = self.time_provider.now(rule.timezone)
        membership = await self._resolve_membership(rule.user_id, summary)

        if membership == rule.channel_id and in_range(current, rule.window):
            await self._disconnect(
                rule.user_id, 'disconnect',
                f"Disconnected {rule.alias} ({rule.user_id}) from channel {rule.channel_id}.",
                summary
            )
        else:
            await self._send_warnings(rule, current, summary)

    async def _sweep_super_rule(self, rule, summary: Dict):
        current = self.time_provider.now(rule.timezone)
        membership = await self._resolve_membership(rule.user_id, summary)

        if membership is not None and in_range(current, rule.window):
            await self._disconnect(
                rule.user_id, 'super_disconnect',
                f"Super disconnected {rule.alias} ({rule.user_id}) from any channel.",
                summary
            )
        else:
            await self._send_warnings(rule, current, summary)

    async def _resolve_membership(self, user_id: str, summary: Dict) -> Optional[str]:
        """Voice channel of the user; a failed lookup counts as an error and as not in voice"""
        try:
            return await self.platform.resolve_membership(user_id)
        except Exception as e:
            logger.error(f"Failed to resolve voice channel for {user_id}: {e}")
            summary['errors'] += 1
            return None

    # ============== ACTIONS ==============

    async def _disconnect(self, user_id: str, action: str, message: str, counters: Dict):
        try:
            await self.platform.remove_from_channel(user_id, reason=message)
        except ExternalActionFailure as e:
            logger.error(f"Failed to disconnect {user_id}: {e}")
            counters['errors'] += 1
            return

        counters['removed'] += 1
        await self.audit_logger.log_action(action, user_id, message)

    async def _send_warnings(self, rule, current: datetime, summary: Dict):
        """Both warning tiers are checked; overlapping lead windows each send a warning"""
        for minutes in WARNING_LEADS:
            if not is_near(current, rule.window, minutes):
                continue

            try:
                await self.platform.send_direct_message(rule.user_id, WARNING_MESSAGE.format(minutes=minutes))
                summary[f'warned_{minutes}'] += 1
            except ExternalActionFailure as e:
                logger.warning(f"Could not send {minutes} minute warning to {rule.user_id}: {e}")
                summary['errors'] += 1
