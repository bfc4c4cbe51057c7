"""Metric data models for parsed OpenMetrics payloads"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple


class MetricType(Enum):
    """OpenMetrics metric family types"""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    SUMMARY = "summary"
    INFO = "info"
    STATESET = "stateset"
    GAUGE_HISTOGRAM = "gaugehistogram"
    UNKNOWN = "unknown"

    @property
    def sample_suffixes(self) -> Tuple[str, ...]:
        """Suffixes a sample name may add to its family name"""
        return _SAMPLE_SUFFIXES[self]

    @property
    def allows_unit(self) -> bool:
        return self not in (MetricType.INFO, MetricType.STATESET)


_SAMPLE_SUFFIXES = {
    MetricType.COUNTER: ("_total", "_created"),
    MetricType.GAUGE: ("",),
    MetricType.HISTOGRAM: ("_bucket", "_sum", "_count", "_created"),
    MetricType.SUMMARY: ("", "_sum", "_count", "_created"),
    MetricType.INFO: ("_info",),
    MetricType.STATESET: ("",),
    MetricType.GAUGE_HISTOGRAM: ("_bucket", "_gsum", "_gcount"),
    MetricType.UNKNOWN: ("",),
}


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


@dataclass(frozen=True)
class Label:
    """A single label name/value pair"""
    name: str
    value: str

    def __str__(self) -> str:
        return f'{self.name}="{escape_label_value(self.value)}"'


@dataclass(frozen=True)
class LabelSet:
    """Canonical, hashable set of labels sorted by name"""
    labels: Tuple[Label, ...] = ()

    def __post_init__(self):
        ordered = tuple(sorted(self.labels, key=lambda label: label.name))
        for previous, current in zip(ordered, ordered[1:]):
            if previous.name == current.name:
                raise ValueError(f"duplicate label name {current.name!r}")
        object.__setattr__(self, "labels", ordered)

    @classmethod
    def from_dict(cls, labels: Optional[Dict[str, str]] = None) -> "LabelSet":
        return cls(tuple(Label(name, value) for name, value in (labels or {}).items()))

    def as_dict(self) -> Dict[str, str]:
        return {label.name: label.value for label in self.labels}

    def __iter__(self) -> Iterator[Label]:
        return iter(self.labels)

    def __len__(self) -> int:
        return len(self.labels)

    def __str__(self) -> str:
        if not self.labels:
            return ""
        return "{" + ",".join(str(label) for label in self.labels) + "}"


class SeriesKey(NamedTuple):
    """Identity of a time series within one payload.

    ``suffix`` separates the companion samples of one family that share a
    label set, such as ``a_total`` and ``a_created`` or ``a_sum`` and
    ``a_count``. It is empty for families whose samples carry the bare
    family name.
    """
    family_name: str
    labels: LabelSet
    suffix: str = ""

    def __str__(self) -> str:
        return f"{self.family_name}{self.suffix}{self.labels}"


@dataclass
class Sample:
    """A single observation from a payload"""
    name: str
    family_name: str
    labels: LabelSet
    value: float
    timestamp: Optional[float] = None
    line_number: int = 0

    @property
    def suffix(self) -> str:
        return self.name[len(self.family_name):]

    @property
    def series_key(self) -> SeriesKey:
        return SeriesKey(self.family_name, self.labels, self.suffix)


@dataclass
class MetricFamily:
    """A metric family with its metadata and samples"""
    name: str
    kind: MetricType = MetricType.UNKNOWN
    help: Optional[str] = None
    unit: Optional[str] = None
    samples: List[Sample] = field(default_factory=list)


class MetricSet:
    """One parsed payload: families in exposition order with their samples"""

    def __init__(self, families: Optional[List[MetricFamily]] = None):
        self._families: Dict[str, MetricFamily] = {}
        for family in families or []:
            self.add_family(family)

    def add_family(self, family: MetricFamily) -> None:
        if family.name in self._families:
            raise ValueError(f"metric family {family.name!r} already present")
        self._families[family.name] = family

    @property
    def families(self) -> List[MetricFamily]:
        return list(self._families.values())

    def family_names(self) -> List[str]:
        return list(self._families)

    def get_family(self, name: str) -> Optional[MetricFamily]:
        return self._families.get(name)

    def samples(self) -> List[Sample]:
        """Samples in payload order"""
        samples = [sample for family in self._families.values() for sample in family.samples]
        return sorted(samples, key=lambda sample: sample.line_number)

    def series_keys(self) -> List[SeriesKey]:
        """Series keys in order of first appearance"""
        seen = {}
        for sample in self.samples():
            seen.setdefault(sample.series_key, None)
        return list(seen)

    def __contains__(self, name: str) -> bool:
        return name in self._families

    def __iter__(self) -> Iterator[MetricFamily]:
        return iter(self._families.values())

    def __len__(self) -> int:
        return len(self._families)

    def __repr__(self) -> str:
        return f"MetricSet(families={self.family_names()!r})"
