"""Hour buckets for vote time series. All keys are UTC."""
from datetime import datetime, timedelta
from typing import Dict, List

from vote_processor.data_models import TimeSeriesPoint, ensure_utc

HOUR_KEY_FORMAT = "%Y-%m-%d %H:%M"
ONE_HOUR = timedelta(hours=1)

HourlyData = Dict[str, Dict[int, float]]


def start_of_hour(ts: datetime) -> datetime:
    return ensure_utc(ts).replace(minute=0, second=0, microsecond=0)


def hour_key(ts: datetime) -> str:
    """Bucket key ("yyyy-MM-dd HH:mm") of the hour containing `ts`."""
    return start_of_hour(ts).strftime(HOUR_KEY_FORMAT)


def initialize_hourly_data(start_time: datetime, end_time: datetime, choices: List[str]) -> HourlyData:
    """One zero-filled bucket per hour from start_time to end_time, inclusive.

    When end_time is before start_time a single bucket for start_time is
    returned. Dicts keep insertion order, so buckets come out chronological.
    """
    current_hour = start_of_hour(start_time)
    last_hour = max(start_of_hour(end_time), current_hour)

    hourly_data: HourlyData = {}
    while current_hour <= last_hour:
        hourly_data[current_hour.strftime(HOUR_KEY_FORMAT)] = {index: 0.0 for index in range(len(choices))}
        current_hour += ONE_HOUR
    return hourly_data


def hourly_data_to_series(hourly_data: HourlyData) -> List[TimeSeriesPoint]:
    return [TimeSeriesPoint(timestamp=key, values=dict(values)) for key, values in hourly_data.items()]


def to_cumulative_series(points: List[TimeSeriesPoint]) -> List[TimeSeriesPoint]:
    """Turn per-hour deltas into running totals per choice."""
    running: Dict[int, float] = {}
    cumulative = []
    for point in points:
        for choice, value in point.values.items():
            running[choice] = running.get(choice, 0.0) + value
        cumulative.append(TimeSeriesPoint(timestamp=point.timestamp, values=dict(running)))
    return cumulative
