"""Parser for the OpenMetrics text exposition format"""
import math
import re
from typing import Dict, List, Optional, Set, Tuple, Union

from .errors import (
    DuplicateLabelNameError,
    DuplicateMetadataError,
    FamilyKindConflictError,
    InterleavedFamilyError,
    InvalidLineError,
    MetadataAfterSampleError,
    MetricNameChangedError,
    TrailingDataError,
    UnknownFamilyError,
    UnterminatedPayloadError,
)
from .models import Label, LabelSet, MetricFamily, MetricSet, MetricType, Sample


EOF_LINE = "# EOF"
METADATA_KEYWORDS = ("TYPE", "HELP", "UNIT")
MAX_EXEMPLAR_LABEL_LENGTH = 128

METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_SPECIAL_VALUES = {"+Inf": math.inf, "Inf": math.inf, "-Inf": -math.inf, "NaN": math.nan}
_ESCAPES = {"\\": "\\", '"': '"', "n": "\n"}

# Bare name first, so an exactly named family wins over a suffixed match
_SUFFIXES = sorted({suffix for kind in MetricType for suffix in kind.sample_suffixes}, key=len)


def parse_metric_set(payload: Union[bytes, str], require_type: bool = False) -> MetricSet:
    """Parse one OpenMetrics payload into a MetricSet.

    The parser keeps no state between calls. The first problem found is
    raised as a ParseError subclass carrying the offending line number.
    With ``require_type`` set, samples must belong to a family declared by
    a ``# TYPE`` line.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            text = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidLineError(f"payload is not valid UTF-8: {e.reason}") from e
    else:
        text = payload
    return _PayloadParser(require_type).parse(text)


def parse_value(token: str, line_number: int = 0) -> float:
    """Parse a sample value, accepting +Inf, -Inf and NaN"""
    if token in _SPECIAL_VALUES:
        return _SPECIAL_VALUES[token]
    if _NUMBER_RE.fullmatch(token):
        return float(token)
    raise InvalidLineError(f'invalid sample value "{token}"', line_number)


def parse_timestamp(token: str, line_number: int = 0) -> float:
    """Parse a sample timestamp in seconds; infinities and NaN are rejected"""
    if _NUMBER_RE.fullmatch(token):
        return float(token)
    raise InvalidLineError(f'invalid timestamp "{token}"', line_number)


def _parse_quoted(text: str, pos: int, line_number: int) -> Tuple[str, int]:
    """Read an escaped string up to the closing quote, return it and the next position"""
    chars = []
    while pos < len(text):
        char = text[pos]
        if char == '"':
            return "".join(chars), pos + 1
        if char == "\\":
            if pos + 1 >= len(text):
                break
            escaped = _ESCAPES.get(text[pos + 1])
            if escaped is None:
                raise InvalidLineError(f"invalid escape sequence \\{text[pos + 1]}", line_number)
            chars.append(escaped)
            pos += 2
            continue
        chars.append(char)
        pos += 1
    raise InvalidLineError("unterminated label value", line_number)


def _unescape_help(text: str, line_number: int) -> str:
    if "\\" not in text:
        return text
    chars = []
    pos = 0
    while pos < len(text):
        char = text[pos]
        if char == "\\":
            escaped = _ESCAPES.get(text[pos + 1]) if pos + 1 < len(text) else None
            if escaped is None:
                raise InvalidLineError("invalid escape sequence in HELP text", line_number)
            chars.append(escaped)
            pos += 2
            continue
        chars.append(char)
        pos += 1
    return "".join(chars)


def _parse_labels(text: str, pos: int, line_number: int) -> Tuple[LabelSet, int]:
    """Parse a label set starting just after '{', return it and the position after '}'"""
    if text.startswith("}", pos):
        return LabelSet(), pos + 1

    labels: List[Label] = []
    names: Set[str] = set()
    while True:
        match = LABEL_NAME_RE.match(text, pos)
        if not match:
            raise InvalidLineError("invalid label name", line_number)
        label_name = match.group(0)
        pos = match.end()
        if not text.startswith('="', pos):
            raise InvalidLineError(f'expected =" after label name "{label_name}"', line_number)
        label_value, pos = _parse_quoted(text, pos + 2, line_number)
        if label_name in names:
            raise DuplicateLabelNameError(label_name, line_number)
        names.add(label_name)
        labels.append(Label(label_name, label_value))

        if pos >= len(text):
            raise InvalidLineError("unterminated label set", line_number)
        if text[pos] == "}":
            return LabelSet(tuple(labels)), pos + 1
        if text[pos] != ",":
            raise InvalidLineError("expected , or } in label set", line_number)
        pos += 1


def _parse_sample_tail(text: str, line_number: int) -> Tuple[float, Optional[float], Optional[str]]:
    """Parse ' value [timestamp] [# exemplar]' following the name and labels"""
    if not text.startswith(" "):
        raise InvalidLineError("expected a single space before the sample value", line_number)
    text = text[1:]
    exemplar = None
    if " # " in text:
        text, exemplar = text.split(" # ", 1)

    parts = text.split(" ")
    if len(parts) > 2:
        raise InvalidLineError("unexpected data after sample timestamp", line_number)
    value = parse_value(parts[0], line_number)
    timestamp = parse_timestamp(parts[1], line_number) if len(parts) == 2 else None
    return value, timestamp, exemplar


def _parse_exemplar(text: str, line_number: int) -> None:
    """Check an exemplar for well-formedness; its contents are not kept"""
    if not text.startswith("{"):
        raise InvalidLineError("exemplar must start with a label set", line_number)
    labels, pos = _parse_labels(text, 1, line_number)
    if sum(len(label.name) + len(label.value) for label in labels) > MAX_EXEMPLAR_LABEL_LENGTH:
        raise InvalidLineError("exemplar label set is too long", line_number)
    _, _, nested = _parse_sample_tail(text[pos:], line_number)
    if nested is not None:
        raise InvalidLineError("unexpected data after exemplar", line_number)


class _PayloadParser:
    """Single-use parse state for one payload"""

    def __init__(self, require_type: bool = False):
        self.require_type = require_type
        self.families: Dict[str, MetricFamily] = {}
        self.metadata_seen: Dict[str, Set[str]] = {}
        self.sampled: Set[str] = set()
        self.closed: Set[str] = set()
        self.current_family: Optional[str] = None
        # (keyword, family name) of metadata lines since the last sample
        self.block: List[Tuple[str, str]] = []

    def parse(self, text: str) -> MetricSet:
        lines = text.split("\n")
        for index, raw_line in enumerate(lines):
            line_number = index + 1
            line = raw_line[:-1] if raw_line.endswith("\r") else raw_line

            if line == EOF_LINE:
                remainder = lines[index + 1:]
                if remainder and remainder != [""]:
                    raise TrailingDataError(line_number + 1)
                return MetricSet(list(self.families.values()))

            if not line:
                if index == len(lines) - 1:
                    break
                raise InvalidLineError("empty line", line_number)
            if line.startswith("#"):
                self._parse_comment(line, line_number)
            else:
                self._parse_sample(line, line_number)

        raise UnterminatedPayloadError()

    def _parse_comment(self, line: str, line_number: int) -> None:
        parts = line.split(" ", 3)
        if len(parts) < 2 or parts[0] != "#" or parts[1] not in METADATA_KEYWORDS:
            return  # free comment

        keyword = parts[1]
        if len(parts) < 4:
            raise InvalidLineError(f"malformed {keyword} line", line_number)
        name, text = parts[2], parts[3]
        if not METRIC_NAME_RE.fullmatch(name):
            raise InvalidLineError(f'invalid metric name "{name}"', line_number)
        if name in self.sampled:
            raise MetadataAfterSampleError(name, keyword, line_number)

        if self.current_family is not None and self.current_family != name:
            self.closed.add(self.current_family)
            self.current_family = None

        family = self.families.get(name)
        if family is None:
            family = MetricFamily(name)
            self.families[name] = family
        seen = self.metadata_seen.setdefault(name, set())

        if keyword == "TYPE":
            self._set_type(family, text, seen, line_number)
        elif keyword in seen:
            raise DuplicateMetadataError(name, keyword, line_number)
        elif keyword == "HELP":
            family.help = _unescape_help(text, line_number)
        else:
            self._set_unit(family, text, seen, line_number)

        seen.add(keyword)
        self.block.append((keyword, name))

    def _set_type(self, family: MetricFamily, text: str, seen: Set[str], line_number: int) -> None:
        try:
            kind = MetricType(text)
        except ValueError:
            raise InvalidLineError(f'invalid metric type "{text}"', line_number) from None

        if "TYPE" in seen:
            if kind != family.kind:
                raise FamilyKindConflictError(family.name, family.kind.value, kind.value, line_number)
            raise DuplicateMetadataError(family.name, "TYPE", line_number)
        if family.unit and not kind.allows_unit:
            raise InvalidLineError(f"{kind.value} metric families cannot have a unit", line_number)
        family.kind = kind

    def _set_unit(self, family: MetricFamily, unit: str, seen: Set[str], line_number: int) -> None:
        if unit and not family.name.endswith("_" + unit):
            raise InvalidLineError(
                f'metric family "{family.name}" must end with its unit suffix "_{unit}"', line_number
            )
        if "TYPE" in seen and not family.kind.allows_unit:
            raise InvalidLineError(f"{family.kind.value} metric families cannot have a unit", line_number)
        family.unit = unit

    def _parse_sample(self, line: str, line_number: int) -> None:
        match = METRIC_NAME_RE.match(line)
        if not match:
            raise InvalidLineError("invalid metric name", line_number)
        name = match.group(0)
        pos = match.end()

        labels = LabelSet()
        if line.startswith("{", pos):
            labels, pos = _parse_labels(line, pos + 1, line_number)
        value, timestamp, exemplar = _parse_sample_tail(line[pos:], line_number)

        self._check_metadata_block(name, line_number)
        family = self._resolve_family(name, line_number)
        self._enter_family(family.name, line_number)

        sample = Sample(
            name=name,
            family_name=family.name,
            labels=labels,
            value=value,
            timestamp=timestamp,
            line_number=line_number,
        )
        if exemplar is not None:
            if not self._allows_exemplar(family, sample.suffix):
                raise InvalidLineError(f'exemplars are not allowed on sample "{name}"', line_number)
            _parse_exemplar(exemplar, line_number)

        family.samples.append(sample)
        self.sampled.add(family.name)
        self.block = []

    def _check_metadata_block(self, sample_name: str, line_number: int) -> None:
        """A metadata block opened by TYPE must keep naming that family"""
        if not self.block:
            return
        typed = next((name for keyword, name in reversed(self.block) if keyword == "TYPE"), None)
        last = self.block[-1][1]
        if typed is not None and last != typed and not self._belongs_to(sample_name, last):
            raise MetricNameChangedError(typed, last, line_number)

    def _belongs_to(self, sample_name: str, family_name: str) -> bool:
        family = self.families.get(family_name)
        if family is None:
            return False
        return any(sample_name == family_name + suffix for suffix in family.kind.sample_suffixes)

    def _resolve_family(self, sample_name: str, line_number: int) -> MetricFamily:
        for suffix in _SUFFIXES:
            if not sample_name.endswith(suffix):
                continue
            family = self.families.get(sample_name[:len(sample_name) - len(suffix)])
            if family is not None and suffix in family.kind.sample_suffixes:
                if self.require_type and "TYPE" not in self.metadata_seen.get(family.name, ()):
                    raise UnknownFamilyError(sample_name, line_number)
                return family

        if sample_name in self.families:
            kind = self.families[sample_name].kind
            raise InvalidLineError(
                f'sample name "{sample_name}" is not valid for {kind.value} family "{sample_name}"',
                line_number,
            )
        if self.require_type:
            raise UnknownFamilyError(sample_name, line_number)

        family = MetricFamily(sample_name)
        self.families[sample_name] = family
        return family

    def _enter_family(self, family_name: str, line_number: int) -> None:
        if family_name == self.current_family:
            return
        if family_name in self.closed:
            raise InterleavedFamilyError(family_name, line_number)
        if self.current_family is not None:
            self.closed.add(self.current_family)
        self.current_family = family_name

    @staticmethod
    def _allows_exemplar(family: MetricFamily, suffix: str) -> bool:
        if family.kind == MetricType.COUNTER:
            return suffix == "_total"
        if family.kind in (MetricType.HISTOGRAM, MetricType.GAUGE_HISTOGRAM):
            return suffix == "_bucket"
        return False
