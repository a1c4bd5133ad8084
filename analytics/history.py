"""
Listening history helpers: relative play times and time-of-play buckets.
"""
from datetime import datetime
from typing import Dict, Iterable


HOUR = 60
DAY = 24 * HOUR
WEEK = 7 * DAY


def minutes_ago(played_at: datetime, now: datetime) -> int:
    if (played_at.tzinfo is None) != (now.tzinfo is None):
        played_at = played_at.replace(tzinfo=now.tzinfo)
    return max(0, int((now - played_at).total_seconds() // 60))


def format_time_ago(minutes: int) -> str:
    if minutes < 1:
        return 'Just now'
    if minutes < HOUR:
        return f'{minutes}m ago'
    if minutes < DAY:
        return f'{minutes // HOUR}h ago'
    return f'{minutes // DAY}d ago'


def time_groups(minutes: Iterable[int]) -> Dict[str, int]:
    """
    Cumulative play counts: a play in the last hour also counts
    towards the last day and the last week.
    """
    minutes = list(minutes)
    return {
        'last_hour': sum(1 for m in minutes if m < HOUR),
        'last_day': sum(1 for m in minutes if m < DAY),
        'last_week': sum(1 for m in minutes if m < WEEK),
        'older': sum(1 for m in minutes if m >= WEEK)
    }


def most_active_period(groups: Dict[str, int]) -> str:
    if groups['last_hour'] > groups['last_day'] * 0.3:
        return 'Very recent (last hour)'
    if groups['last_day'] > groups['last_week'] * 0.4:
        return 'Recent (last day)'
    if groups['last_week'] > groups['older'] * 0.6:
        return 'This week'
    return 'Spread out over time'
