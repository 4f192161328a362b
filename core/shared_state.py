"""Shared state between bot and backend - avoids circular imports"""

class SharedState:
    def __init__(self):
        self.bot = None
        self.store = None
        self.time_provider = None
        self.enforcer = None
        self.audit_logger = None
        self.health_checker = None

    def set_bot(self, bot):
        self.bot = bot

    def set_curfew(self, store, time_provider, enforcer, audit_logger, health_checker):
        self.store = store
        self.time_provider = time_provider
        self.enforcer = enforcer
        self.audit_logger = audit_logger
        self.health_checker = health_checker

# Global instance
state = SharedState()
