import logging
from datetime import datetime
from typing import Dict, List

from .errors import ExternalActionFailure

logger = logging.getLogger(__name__)

MAX_AUDIT_ENTRIES = 1000


class CurfewAuditLogger:
    """Keeps an in-memory audit trail of curfew actions and mirrors it to the log channel"""

    def __init__(self, store, platform):
        self.store = store
        self.platform = platform
        self._audit_log = []

    async def log_action(self, action: str, user_id: str, message: str, details: Dict = None) -> Dict:
        """Records an action and posts it to the configured log channel, if any"""
        audit_entry = {
            'id': f"audit_{user_id}_{int(datetime.now().timestamp() * 1000)}",
            'action': action,
            'user_id': user_id,
            'message': message,
            'details': details or {},
            'timestamp': datetime.now().isoformat(),
            'posted': False
        }

        self._audit_log.append(audit_entry)

        # Keep only last 1000 entries to prevent memory issues
        if len(self._audit_log) > MAX_AUDIT_ENTRIES:
            self._audit_log = self._audit_log[-MAX_AUDIT_ENTRIES:]

        logger.info(message)

        log_channel_id = self.store.log_channel_id
        if log_channel_id:
            try:
                await self.platform.post_to_channel(log_channel_id, message)
                audit_entry['posted'] = True
            except ExternalActionFailure as e:
                logger.error(f"Failed to post curfew log: {e}")

        return audit_entry

    def get_audit_logs(self, user_id: str = None, action: str = None, limit: int = 50) -> List[Dict]:
        """Retrieves audit entries, newest first, with optional filtering"""
        logs = list(self._audit_log)

        if user_id:
            logs = [log for log in logs if log['user_id'] == user_id]

        if action:
            logs = [log for log in logs if log['action'] == action]

        logs.reverse()
        return logs[:limit]

    def __len__(self):
        return len(self._audit_log)
