"""
Core bot functionality - shared across all modules
"""

from . import permissions
from . import shared_state

__all__ = ['permissions', 'shared_state']
