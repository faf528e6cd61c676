"""
Core infrastructure package for the analytics engine.

Provides:
- Configuration management via pydantic-settings
- The contract error raised for caller misuse

Usage:
    from dispatch_analytics.core import get_settings, AnalyticsContractError
"""

from dispatch_analytics.core.config import Settings, get_settings
from dispatch_analytics.core.errors import AnalyticsContractError

__all__ = [
    'Settings',
    'get_settings',
    'AnalyticsContractError',
]
