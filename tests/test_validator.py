"""Tests for the validation loop against successive payloads"""
import pytest

from exposition.errors import MetricNameChangedError, ParseError
from validator import (
    CounterValueDecreaseError,
    ErrorLevel,
    Loop,
    MetricDisappearedError,
    TimestampDecreaseError,
    ValidationErrors,
)


def make_test_clock():
    """Clock returning 1, 2, 3, ... seconds"""
    seconds = 0

    def clock():
        nonlocal seconds
        seconds += 1
        return float(seconds)

    return clock


def make_loop(level=ErrorLevel.MUST):
    return Loop("").with_clock(make_test_clock()).with_error_level(level)


def run_exports(loop, exports):
    """Feed payloads in order and join every reported error into one string"""
    errors = []
    for export in exports:
        try:
            result = loop.parse_and_validate(export.encode("utf-8"), loop.clock())
        except ParseError as e:
            errors.append(str(e))
            continue
        if result.error is not None:
            errors.append(str(result.error))
    return "\n".join(errors)


COUNTER_DECREASING = [
    """# TYPE a counter
# HELP a help
a_total 2
# EOF""",
    """# TYPE a counter
# HELP a help
a_total 1
# EOF""",
]

COUNTER_INCREASING = [
    """# TYPE a counter
# HELP a help
a_total 1
# EOF""",
    """# TYPE a counter
# HELP a help
a_total 2
# EOF""",
]

METRIC_DISAPPEARING = [
    """# TYPE a counter
# HELP a help
a_total 1
# EOF""",
    """# TYPE b counter
# HELP b help
b_total 2
# EOF""",
]

DISTINCT_LABELS = [
    """# TYPE a1 counter
# HELP a1 help
a1_total{bar="baz1"} 1
# TYPE a2 counter
# HELP a2 help
a2_total{bar="baz2"} 1
# EOF""",
]

DUPLICATE_LABELS = [
    """# TYPE a1 counter
# HELP a1 help
a1_total{bar="baz"} 1
# TYPE a2 counter
# HELP a2 help
a2_total{bar="baz"} 1
# EOF""",
]

TIMESTAMP_DECREASE_IN_SET = [
    """# TYPE a counter
# HELP a help
a_total{a="1",foo="bar"} 1 2
a_total{a="1",foo="bar"} 2 1
# EOF""",
]

TIMESTAMP_DECREASE_BETWEEN_SETS = [
    """# TYPE a counter
# HELP a help
a_total{a="1",foo="bar"} 1 2
# EOF""",
    """# TYPE a counter
# HELP a help
a_total{a="1",foo="bar"} 2 1
# EOF""",
]

METRIC_NAME_CHANGE = [
    """# TYPE a counter
# HELP b help
a_total1 2
# EOF""",
]


@pytest.mark.parametrize("exports, expected", [
    (COUNTER_DECREASING, "counter value must not decrease"),
    (COUNTER_INCREASING, ""),
    (METRIC_DISAPPEARING, "metric should not disappear"),
    (DISTINCT_LABELS, ""),
    (DUPLICATE_LABELS, "duplicate label set across families"),
    (TIMESTAMP_DECREASE_IN_SET, "timestamp must not decrease"),
    (TIMESTAMP_DECREASE_BETWEEN_SETS, "timestamp must not decrease"),
    (METRIC_NAME_CHANGE, 'metric name changed from "a" to "b"'),
], ids=[
    "bad_must_not_counter_decreasing",
    "good_counter_increasing",
    "bad_should_not_metric_disappearing",
    "good_not_duplicate_labels",
    "bad_should_not_duplicate_labels",
    "bad_must_not_timestamp_decrease_in_metric_set",
    "bad_must_not_timestamp_decrease_between_metric_sets",
    "bad_must_not_metric_name_change",
])
def test_validate_should_and_must(exports, expected):
    """SHOULD level reports both rule strata"""
    loop = make_loop(ErrorLevel.SHOULD)
    assert run_exports(loop, exports) == expected


@pytest.mark.parametrize("exports, expected", [
    (COUNTER_DECREASING, "counter value must not decrease"),
    (COUNTER_INCREASING, ""),
    (METRIC_DISAPPEARING, ""),
    (DISTINCT_LABELS, ""),
    (DUPLICATE_LABELS, ""),
    (TIMESTAMP_DECREASE_IN_SET, "timestamp must not decrease"),
    (TIMESTAMP_DECREASE_BETWEEN_SETS, "timestamp must not decrease"),
    (METRIC_NAME_CHANGE, 'metric name changed from "a" to "b"'),
], ids=[
    "bad_must_not_counter_decreasing",
    "good_counter_increasing",
    "bad_should_not_metric_disappearing",
    "good_not_duplicate_labels",
    "bad_should_not_duplicate_labels",
    "bad_must_not_timestamp_decrease_in_metric_set",
    "bad_must_not_timestamp_decrease_between_metric_sets",
    "bad_must_not_metric_name_change",
])
def test_validate_must_only(exports, expected):
    """MUST level suppresses SHOULD violations"""
    loop = make_loop()
    assert run_exports(loop, exports) == expected


def counter_payload(value, timestamp=None):
    suffix = f" {timestamp}" if timestamp is not None else ""
    return f"# TYPE a counter\n# HELP a help\na_total{{x=\"1\"}} {value}{suffix}\n# EOF\n"


class TestLoopState:
    """Test cold/warm transitions and baseline updates"""

    def setup_method(self):
        """Setup test fixtures"""
        self.loop = make_loop()

    def test_loop_starts_cold(self):
        """Test a fresh loop has no previous scrape"""
        assert self.loop.is_warm is False
        assert self.loop.state is None
        assert self.loop.scrape_count == 0

    def test_first_scrape_warms_loop(self):
        """Test a successful parse records the baseline"""
        result = self.loop.parse_and_validate(counter_payload(5))

        assert result.ok
        assert self.loop.is_warm is True
        assert self.loop.scrape_count == 1
        assert self.loop.state.scraped_at == 1.0

    def test_parse_failure_keeps_state(self):
        """Test a parse error leaves the previous baseline in place"""
        self.loop.parse_and_validate(counter_payload(5))
        state = self.loop.state

        with pytest.raises(ParseError):
            self.loop.parse_and_validate("a_total 1\n")

        assert self.loop.state is state
        assert self.loop.scrape_count == 1

    def test_parse_failure_on_cold_loop_stays_cold(self):
        """Test a parse error on the first payload does not warm the loop"""
        with pytest.raises(MetricNameChangedError):
            self.loop.parse_and_validate(METRIC_NAME_CHANGE[0])

        assert self.loop.is_warm is False

    def test_state_updated_after_violation(self):
        """Test the next scrape compares against the decreased value"""
        self.loop.parse_and_validate(counter_payload(10))
        decreased = self.loop.parse_and_validate(counter_payload(3))
        recovered = self.loop.parse_and_validate(counter_payload(4))

        assert [type(v) for v in decreased.violations] == [CounterValueDecreaseError]
        assert recovered.ok

    def test_counter_reset_to_zero_allowed(self):
        """Test a drop to exactly zero is a legitimate reset"""
        self.loop.parse_and_validate(counter_payload(10))
        reset = self.loop.parse_and_validate(counter_payload(0))
        after = self.loop.parse_and_validate(counter_payload(2))

        assert reset.ok
        assert after.ok

    def test_equal_counter_value_allowed(self):
        """Test an unchanged counter is not a decrease"""
        self.loop.parse_and_validate(counter_payload(7))
        assert self.loop.parse_and_validate(counter_payload(7)).ok

    def test_reset_returns_to_cold(self):
        """Test reset forgets the baseline"""
        self.loop.parse_and_validate(counter_payload(10))
        self.loop.reset()

        assert self.loop.is_warm is False
        assert self.loop.parse_and_validate(counter_payload(1)).ok

    def test_now_defaults_to_clock(self):
        """Test the injected clock stamps each scrape"""
        first = self.loop.parse_and_validate(counter_payload(1))
        second = self.loop.parse_and_validate(counter_payload(2))

        assert first.scraped_at == 1.0
        assert second.scraped_at == 2.0

    def test_explicit_now(self):
        """Test an explicit now overrides the clock"""
        result = self.loop.parse_and_validate(counter_payload(1), now=42.0)
        assert result.scraped_at == 42.0
        assert self.loop.state.scraped_at == 42.0

    def test_payload_accepts_str(self):
        """Test str payloads are accepted alongside bytes"""
        result = self.loop.parse_and_validate(counter_payload(1))
        assert result.metric_set.family_names() == ["a"]


class TestLoopReporting:
    """Test error aggregation, ordering and level filtering"""

    def test_cold_start_has_no_cross_scrape_violations(self):
        """Test the first payload never reports cross-scrape rules"""
        loop = make_loop(ErrorLevel.SHOULD)
        result = loop.parse_and_validate(counter_payload(1, timestamp=5))
        assert result.ok

    def test_multiple_violations_reported_together(self):
        """Test all applicable rules report on one sample"""
        loop = make_loop()
        loop.parse_and_validate(counter_payload(10, timestamp=5))
        result = loop.parse_and_validate(counter_payload(3, timestamp=4))

        assert [type(v) for v in result.violations] == [CounterValueDecreaseError, TimestampDecreaseError]
        assert str(result.error) == "counter value must not decrease\ntimestamp must not decrease"

    def test_per_set_errors_before_cross_set(self):
        """Test within-payload violations are listed first"""
        loop = make_loop()
        loop.parse_and_validate(
            "# TYPE a counter\na_total 10\n# TYPE b gauge\nb 1 5\n# EOF\n"
        )
        result = loop.parse_and_validate(
            "# TYPE a counter\na_total 3\n# TYPE b gauge\nb 1 6\nb 1 5\n# EOF\n"
        )

        assert [str(v) for v in result.violations] == [
            "timestamp must not decrease",
            "counter value must not decrease",
        ]
        assert result.violations[0].line_number == 5
        assert result.violations[1].line_number == 2

    def test_cross_set_errors_in_payload_order(self):
        """Test cross-set violations follow sample order"""
        loop = make_loop()
        loop.parse_and_validate("# TYPE a counter\na_total{x=\"1\"} 5\na_total{x=\"2\"} 5\n# EOF\n")
        result = loop.parse_and_validate("# TYPE a counter\na_total{x=\"1\"} 4\na_total{x=\"2\"} 3\n# EOF\n")

        assert [v.labels.as_dict() for v in result.violations] == [{"x": "1"}, {"x": "2"}]
        assert result.violations[0].detail == {"previous": 5.0, "current": 4.0}

    def test_disappearance_reported_after_sample_errors(self):
        """Test vanished families are listed after sample-level cross-set errors"""
        loop = make_loop(ErrorLevel.SHOULD)
        loop.parse_and_validate("# TYPE a counter\na_total 5\n# TYPE b gauge\nb 1\n# EOF\n")
        result = loop.parse_and_validate("# TYPE a counter\na_total 4\n# EOF\n")

        assert str(result.error) == "counter value must not decrease\nmetric should not disappear"
        assert isinstance(result.violations[1], MetricDisappearedError)
        assert result.violations[1].family_name == "b"

    def test_level_filter_is_subset(self):
        """Test MUST-level errors are a subset of SHOULD-level errors"""
        sequence = METRIC_DISAPPEARING + DUPLICATE_LABELS + COUNTER_DECREASING
        must = make_loop(ErrorLevel.MUST)
        should = make_loop(ErrorLevel.SHOULD)

        must_errors = run_exports(must, sequence).splitlines()
        should_errors = run_exports(should, sequence).splitlines()

        assert set(must_errors) <= set(should_errors)
        assert len(should_errors) > len(must_errors)

    def test_raise_for_violations(self):
        """Test the aggregated error can be raised"""
        loop = make_loop()
        loop.parse_and_validate(COUNTER_DECREASING[0])
        result = loop.parse_and_validate(COUNTER_DECREASING[1])

        with pytest.raises(ValidationErrors) as exc_info:
            result.raise_for_violations()
        assert len(exc_info.value) == 1
        assert exc_info.value.must == result.violations
        assert exc_info.value.should == []

    def test_error_level_from_string(self):
        """Test levels can be given as strings"""
        loop = Loop("target", error_level="should")
        assert loop.error_level == ErrorLevel.SHOULD
        assert loop.with_error_level("MUST").error_level == ErrorLevel.MUST

    def test_loops_are_independent(self):
        """Test two loops share no state"""
        first = make_loop()
        second = make_loop()
        first.parse_and_validate(counter_payload(10))

        assert second.parse_and_validate(counter_payload(1)).ok
        assert second.state is not first.state
