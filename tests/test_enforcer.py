"""
Tests for the CurfewEnforcer reactive check and proactive sweep
"""

import asyncio
import pytest
from unittest.mock import Mock, AsyncMock, call
from datetime import datetime, timezone

from core.curfew.clock import TimeProvider
from core.curfew.enforcer import CurfewEnforcer
from core.curfew.errors import ExternalActionFailure
from core.curfew.logger import CurfewAuditLogger
from core.curfew.platform import DiscordPlatform
from core.curfew.store import RuleStore

WARN_15 = "You will be disconnected in 15 minutes."
WARN_5 = "You will be disconnected in 5 minutes."


class FakeClock:
    def __init__(self):
        self.current = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)

    def set(self, hour, minute, second=0):
        self.current = self.current.replace(hour=hour, minute=minute, second=second)

    def __call__(self):
        return self.current


class TestCurfewEnforcer:
    """Test suite for CurfewEnforcer"""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self):
        store = RuleStore(default_timezone='+0000')
        store.log_channel_id = 'LOG'
        return store

    @pytest.fixture
    def mock_platform(self):
        """Mock Discord platform for testing"""
        platform = Mock()
        platform.resolve_membership = AsyncMock(return_value='C1')
        platform.remove_from_channel = AsyncMock()
        platform.send_direct_message = AsyncMock()
        platform.post_to_channel = AsyncMock()
        return platform

    @pytest.fixture
    def audit_logger(self, store, mock_platform):
        return CurfewAuditLogger(store, mock_platform)

    @pytest.fixture
    def enforcer(self, store, clock, mock_platform, audit_logger):
        """Create CurfewEnforcer instance for testing"""
        time_provider = TimeProvider(default_timezone='+0000', clock=clock)
        return CurfewEnforcer(store, time_provider, mock_platform, audit_logger)

    @pytest.fixture
    def night_owl(self, store):
        return store.set_user_rule('42', 'Night Owl', '22:00-23:00', 'C1', '+0000')

    # ============== SWEEP ==============

    @pytest.mark.asyncio
    async def test_sweep_enforces_inside_window(self, enforcer, clock, mock_platform, night_owl):
        """Test one removal and one log post inside the window"""
        clock.set(22, 30)

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_awaited_once()
        assert mock_platform.remove_from_channel.await_args.args == ('42',)
        mock_platform.post_to_channel.assert_awaited_once_with(
            'LOG', 'Disconnected Night Owl (42) from channel C1.'
        )
        mock_platform.send_direct_message.assert_not_awaited()
        assert summary['removed'] == 1
        assert summary['processed'] == 1
        assert summary['errors'] == 0

    @pytest.mark.asyncio
    async def test_sweep_fifteen_minute_warning_only(self, enforcer, clock, mock_platform, night_owl):
        """Test 21:50 is inside the 15 minute lead window but not the 5 minute one"""
        clock.set(21, 50)

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_not_awaited()
        mock_platform.send_direct_message.assert_awaited_once_with('42', WARN_15)
        assert summary['warned_15'] == 1
        assert summary['warned_5'] == 0

    @pytest.mark.asyncio
    async def test_sweep_both_warnings_when_lead_windows_overlap(self, enforcer, clock, mock_platform, night_owl):
        """Test 21:56 falls in both 21:45-22:45 and 21:55-22:55"""
        clock.set(21, 56)

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_not_awaited()
        assert mock_platform.send_direct_message.await_args_list == [call('42', WARN_15), call('42', WARN_5)]
        assert summary['warned_15'] == 1
        assert summary['warned_5'] == 1

    @pytest.mark.asyncio
    async def test_sweep_nothing_far_from_window(self, enforcer, clock, mock_platform, night_owl):
        """Test no action outside both window and lead windows"""
        clock.set(12, 0)

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_not_awaited()
        mock_platform.send_direct_message.assert_not_awaited()
        mock_platform.post_to_channel.assert_not_awaited()
        assert summary['processed'] == 1

    @pytest.mark.asyncio
    async def test_user_rule_other_channel_never_removed(self, enforcer, clock, mock_platform, night_owl):
        """Test a user in a different channel is not removed even inside the window"""
        clock.set(22, 30)
        mock_platform.resolve_membership.return_value = 'C2'

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_not_awaited()
        assert summary['removed'] == 0
        # 22:30 is still inside both shifted lead windows
        assert mock_platform.send_direct_message.await_count == 2

    @pytest.mark.asyncio
    async def test_super_rule_ignores_channel(self, enforcer, store, clock, mock_platform):
        """Test super rules remove users from any channel"""
        store.set_super_rule('42', 'Night Owl', '22:00-23:00', '+0000')
        mock_platform.resolve_membership.return_value = 'C9'
        clock.set(22, 30)

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_awaited_once()
        mock_platform.post_to_channel.assert_awaited_once_with(
            'LOG', 'Super disconnected Night Owl (42) from any channel.'
        )
        assert summary['removed'] == 1

    @pytest.mark.asyncio
    async def test_super_rule_absent_user_still_warned(self, enforcer, store, clock, mock_platform):
        """Test a user outside voice is not removed but still gets warnings"""
        store.set_super_rule('42', 'Night Owl', '22:00-23:00', '+0000')
        mock_platform.resolve_membership.return_value = None
        clock.set(21, 50)

        summary = await enforcer.on_tick()

        mock_platform.remove_from_channel.assert_not_awaited()
        mock_platform.send_direct_message.assert_awaited_once_with('42', WARN_15)
        assert summary['warned_15'] == 1

    @pytest.mark.asyncio
    async def test_sweep_uses_rule_timezone(self, enforcer, store, clock, mock_platform):
        """Test local time is computed per rule"""
        store.set_user_rule('42', 'Night Owl', '22:00-23:00', 'C1', '+0530')
        clock.set(16, 45)  # 22:15 in +0530

        summary = await enforcer.on_tick()

        assert summary['removed'] == 1

    @pytest.mark.asyncio
    async def test_bad_timezone_falls_back_to_default(self, enforcer, store, clock, mock_platform):
        """Test an unparseable rule timezone is evaluated in the default"""
        store.set_user_rule('42', 'Night Owl', '22:00-23:00', 'C1', 'Not/AZone')
        clock.set(22, 30)

        summary = await enforcer.on_tick()

        assert summary['removed'] == 1
        assert summary['errors'] == 0

    @pytest.mark.asyncio
    async def test_failure_on_one_rule_does_not_abort_sweep(self, enforcer, store, clock, mock_platform):
        """Test per-rule failure isolation"""
        store.set_user_rule('41', 'Broken', '22:00-23:00', 'C1', '+0000')
        store.set_user_rule('42', 'Night Owl', '22:00-23:00', 'C1', '+0000')
        clock.set(22, 30)

        async def remove(user_id, reason=None):
            if user_id == '41':
                raise RuntimeError("gateway hiccup")

        mock_platform.remove_from_channel.side_effect = remove

        summary = await enforcer.on_tick()

        assert summary['processed'] == 2
        assert summary['errors'] == 1
        assert summary['removed'] == 1
        assert mock_platform.remove_from_channel.await_args.args == ('42',)

    @pytest.mark.asyncio
    async def test_membership_lookup_failure_still_warns(self, enforcer, clock, mock_platform, night_owl):
        """Test a failed voice lookup is counted but the warnings are still sent"""
        clock.set(21, 50)
        mock_platform.resolve_membership.side_effect = RuntimeError("gateway hiccup")

        summary = await enforcer.on_tick()

        assert summary['errors'] == 1
        assert summary['warned_15'] == 1
        mock_platform.remove_from_channel.assert_not_awaited()
        mock_platform.send_direct_message.assert_awaited_once_with('42', WARN_15)

    @pytest.mark.asyncio
    async def test_removal_failure_is_counted_not_logged(self, enforcer, clock, mock_platform, night_owl):
        """Test a failed disconnect is reported and skips the log post"""
        clock.set(22, 30)
        mock_platform.remove_from_channel.side_effect = ExternalActionFailure("Missing Permissions")

        summary = await enforcer.on_tick()

        assert summary['removed'] == 0
        assert summary['errors'] == 1
        mock_platform.post_to_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_warning_failure_is_counted(self, enforcer, clock, mock_platform, night_owl):
        """Test a failed DM does not stop the other tier"""
        clock.set(21, 56)
        mock_platform.send_direct_message.side_effect = [ExternalActionFailure("DMs closed"), None]

        summary = await enforcer.on_tick()

        assert summary['errors'] == 1
        assert summary['warned_15'] == 0
        assert summary['warned_5'] == 1

    @pytest.mark.asyncio
    async def test_no_log_channel_no_post(self, enforcer, store, clock, mock_platform, night_owl):
        """Test logging is disabled without a log channel"""
        store.log_channel_id = None
        clock.set(22, 30)

        summary = await enforcer.on_tick()

        assert summary['removed'] == 1
        mock_platform.post_to_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_log_post_failure_does_not_fail_removal(self, enforcer, clock, mock_platform, night_owl):
        """Test a failed audit post is tolerated"""
        clock.set(22, 30)
        mock_platform.post_to_channel.side_effect = ExternalActionFailure("Log channel not found")

        summary = await enforcer.on_tick()

        assert summary['removed'] == 1
        assert summary['errors'] == 0

    @pytest.mark.asyncio
    async def test_sweeps_are_serialized(self, enforcer, clock, mock_platform, night_owl):
        """Test a tick during an in-flight sweep is skipped"""
        clock.set(22, 30)
        release = asyncio.Event()

        async def slow_resolve(user_id):
            await release.wait()
            return 'C1'

        mock_platform.resolve_membership.side_effect = slow_resolve

        first = asyncio.create_task(enforcer.on_tick())
        await asyncio.sleep(0)

        assert enforcer.sweep_running
        assert await enforcer.on_tick() is None
        assert enforcer.skipped_ticks == 1

        release.set()
        summary = await first

        assert summary['removed'] == 1
        assert not enforcer.sweep_running
        mock_platform.remove_from_channel.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_last_sweep_recorded(self, enforcer, clock, night_owl):
        """Test the summary is kept for health reporting"""
        assert enforcer.last_sweep is None

        summary = await enforcer.on_tick()

        assert enforcer.last_sweep is summary
        assert summary['finished_at'] is not None

    # ============== REACTIVE ==============

    @pytest.mark.asyncio
    async def test_join_rule_channel_inside_window(self, enforcer, clock, mock_platform, night_owl):
        """Test joining the restricted channel during the window disconnects"""
        clock.set(22, 30)

        result = await enforcer.on_membership_changed('42', 'C1')

        assert result == {'removed': 1, 'errors': 0}
        mock_platform.post_to_channel.assert_awaited_once_with(
            'LOG', 'Disconnected Night Owl (42) from channel C1.'
        )

    @pytest.mark.asyncio
    async def test_join_other_channel_inside_window(self, enforcer, clock, mock_platform, night_owl):
        """Test joining another channel is allowed for user rules"""
        clock.set(22, 30)

        result = await enforcer.on_membership_changed('42', 'C2')

        assert result['removed'] == 0
        mock_platform.remove_from_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_join_outside_window(self, enforcer, clock, mock_platform, night_owl):
        """Test no action outside the window, and no warnings from the reactive path"""
        clock.set(21, 56)

        result = await enforcer.on_membership_changed('42', 'C1')

        assert result['removed'] == 0
        mock_platform.send_direct_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_and_super_rules_both_checked(self, enforcer, store, clock, mock_platform, night_owl):
        """Test both rule kinds run on the same event"""
        store.set_super_rule('42', 'Night Owl', '22:00-23:30', '+0000')
        clock.set(22, 30)

        result = await enforcer.on_membership_changed('42', 'C1')

        assert result['removed'] == 2
        assert mock_platform.remove_from_channel.await_count == 2
        assert mock_platform.post_to_channel.await_args_list == [
            call('LOG', 'Disconnected Night Owl (42) from channel C1.'),
            call('LOG', 'Super disconnected Night Owl (42) from any channel.'),
        ]

    @pytest.mark.asyncio
    async def test_super_rule_on_any_channel(self, enforcer, store, clock, mock_platform):
        """Test super rules apply to whichever channel was joined"""
        store.set_super_rule('42', 'Night Owl', '22:00-23:00', '+0000')
        clock.set(22, 30)

        result = await enforcer.on_membership_changed('42', 'C7')

        assert result['removed'] == 1

    @pytest.mark.asyncio
    async def test_leaving_voice_does_nothing(self, enforcer, store, clock, mock_platform, night_owl):
        """Test a leave event has nothing to remove"""
        store.set_super_rule('42', 'Night Owl', '22:00-23:00', '+0000')
        clock.set(22, 30)

        result = await enforcer.on_membership_changed('42', None)

        assert result == {'removed': 0, 'errors': 0}
        mock_platform.remove_from_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_user_is_ignored(self, enforcer, clock, mock_platform, night_owl):
        """Test users without rules are never touched"""
        clock.set(22, 30)

        result = await enforcer.on_membership_changed('1000', 'C1')

        assert result['removed'] == 0
        mock_platform.remove_from_channel.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reactive_removal_failure(self, enforcer, clock, mock_platform, night_owl):
        """Test reactive failures are counted, not raised"""
        clock.set(22, 30)
        mock_platform.remove_from_channel.side_effect = ExternalActionFailure("gone")

        result = await enforcer.on_membership_changed('42', 'C1')

        assert result == {'removed': 0, 'errors': 1}


class TestCurfewEnforcerWithDiscord:
    """Sweeps through the real Discord adapter with a mocked bot"""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def member(self):
        member = Mock()
        member.voice.channel.id = 1001
        member.move_to = AsyncMock()
        member.send = AsyncMock()
        return member

    @pytest.fixture
    def mock_bot(self, member):
        guild = Mock()
        guild.get_member = Mock(side_effect=lambda user_id: member if user_id == 42 else None)
        bot = Mock()
        bot.guilds = [guild]
        bot.get_user = Mock(return_value=None)
        bot.fetch_user = AsyncMock()
        bot.get_channel = Mock(return_value=None)
        return bot

    @pytest.fixture
    def store(self):
        return RuleStore(default_timezone='+0000')

    @pytest.fixture
    def enforcer(self, store, clock, mock_bot):
        platform = DiscordPlatform(mock_bot)
        time_provider = TimeProvider(default_timezone='+0000', clock=clock)
        return CurfewEnforcer(store, time_provider, platform, CurfewAuditLogger(store, platform))

    @pytest.mark.asyncio
    async def test_removal_with_log_channel_name(self, enforcer, store, clock, member):
        """Test a non-numeric log channel does not turn a removal into an error"""
        store.set_user_rule('42', 'Night Owl', '22:00-23:00', '1001', '+0000')
        store.log_channel_id = 'mod-log'
        clock.set(22, 30)

        summary = await enforcer.on_tick()

        member.move_to.assert_awaited_once()
        assert summary['removed'] == 1
        assert summary['errors'] == 0

    @pytest.mark.asyncio
    async def test_non_numeric_user_rule(self, enforcer, store, clock, mock_bot):
        """Test a rule for an impossible user id fails its warnings cleanly"""
        store.set_user_rule('abc', 'Typo', '22:00-23:00', '1001', '+0000')
        clock.set(21, 56)

        summary = await enforcer.on_tick()

        assert summary['processed'] == 1
        assert summary['errors'] == 2
        assert summary['warned_15'] == 0
        mock_bot.fetch_user.assert_not_awaited()
