"""Error types raised by the curfew rule engine"""


class CurfewError(Exception):
    """Base class for curfew errors"""


class ValidationError(CurfewError, ValueError):
    """Raised when a rule or channel list fails validation; state is left unchanged"""


class RuleNotFoundError(CurfewError, LookupError):
    """Raised when a removal targets a rule that does not exist or does not match"""


class ExternalActionFailure(CurfewError):
    """Raised by the platform adapter when a Discord action could not be completed"""
