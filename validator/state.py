"""Cross-scrape summary state"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from exposition.models import MetricSet, MetricType, SeriesKey


@dataclass(frozen=True)
class SeriesState:
    """What is remembered about one series between scrapes"""
    last_value: Optional[float] = None  # counters only
    last_timestamp: Optional[float] = None


@dataclass(frozen=True)
class LastScrape:
    """Summary of the most recent successfully parsed payload.

    Only the per-series values needed by cross-scrape rules are kept, so a
    loop holds memory proportional to its number of active series rather
    than the whole previous payload.
    """
    scraped_at: float
    series_seen: Dict[SeriesKey, SeriesState] = field(default_factory=dict)
    family_kind: Dict[str, MetricType] = field(default_factory=dict)

    @property
    def family_names(self) -> List[str]:
        """Family names in the order they appeared in the payload"""
        return list(self.family_kind)

    def get_series(self, key: SeriesKey) -> Optional[SeriesState]:
        return self.series_seen.get(key)

    @classmethod
    def from_metric_set(cls, metric_set: MetricSet, scraped_at: float) -> "LastScrape":
        """Summarize a metric set.

        The recorded counter value is the last one in payload order; the
        recorded timestamp is the latest one seen for the series.
        """
        family_kind = {family.name: family.kind for family in metric_set}
        values: Dict[SeriesKey, Optional[float]] = {}
        timestamps: Dict[SeriesKey, Optional[float]] = {}

        for sample in metric_set.samples():
            key = sample.series_key
            if is_counter_total(family_kind[sample.family_name], key):
                values[key] = sample.value
            else:
                values.setdefault(key, None)
            if sample.timestamp is not None:
                previous = timestamps.get(key)
                if previous is None or sample.timestamp > previous:
                    timestamps[key] = sample.timestamp
            else:
                timestamps.setdefault(key, None)

        series_seen = {
            key: SeriesState(last_value=values[key], last_timestamp=timestamps[key])
            for key in values
        }
        return cls(scraped_at=scraped_at, series_seen=series_seen, family_kind=family_kind)


def is_counter_total(kind: MetricType, key: SeriesKey) -> bool:
    """Whether a series carries a counter's running total"""
    return kind == MetricType.COUNTER and key.suffix == "_total"
