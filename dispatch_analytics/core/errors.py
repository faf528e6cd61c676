"""
Error types raised by the analytics engine.

The engine never raises for bad data; invalid records are dropped and reported
through ingestion reports. Only caller contract violations raise.
"""


class AnalyticsContractError(ValueError):
    """
    Raised when a caller breaks the engine's calling contract.

    Examples are a window without bounds, a negative leaderboard size or an
    unknown grouping value passed directly to a service function.
    """
