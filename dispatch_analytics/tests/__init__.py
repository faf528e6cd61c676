'''
Dispatch Analytics Test Suite

Test Modules:
-------------
- test_ingestion.py: raw row normalization, dropped and blanked fields
- test_filters.py: window presets, custom ranges, dimension filters
- test_bucketing.py: calendar buckets, labels, granularity rules
- test_statistics.py: percentiles, sample std, small-sample flag
- test_breakdown.py: status taxonomy and urgency shares
- test_leaderboard.py: ranking, tie breaks, top-N
- test_trends.py: daily series and period-over-period delta
- test_distribution.py: per-bucket statistics and the price distribution
- test_earnings.py: partner commission and payout rollups
- test_snapshot.py: section composition end to end
- test_cache_key.py: canonical snapshot cache keys

Running Tests:
--------------
    pip install -e .[test]
    pytest dispatch_analytics/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and the sample dataset.
'''

__all__ = []
