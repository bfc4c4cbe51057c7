"""Parse errors raised for malformed OpenMetrics payloads"""


class ParseError(ValueError):
    """Base class for payloads that cannot be parsed.

    A parse error is fatal for the scrape that produced it: no rules run and
    no cross-scrape state is recorded.
    """

    kind = "parse"

    def __init__(self, message: str, line_number: int = 0):
        super().__init__(message)
        self.message = message
        self.line_number = line_number

    def __str__(self) -> str:
        return self.message


class UnterminatedPayloadError(ParseError):
    kind = "parse_unterminated"

    def __init__(self):
        super().__init__("payload is not terminated by # EOF")


class TrailingDataError(ParseError):
    kind = "parse_trailing_data"

    def __init__(self, line_number: int):
        super().__init__("unexpected data after # EOF", line_number)


class InvalidLineError(ParseError):
    """Malformed sample or metadata line (bad number, string or escape)"""

    kind = "parse_invalid_line"


class MetadataAfterSampleError(ParseError):
    kind = "parse_metadata_after_sample"

    def __init__(self, family_name: str, keyword: str, line_number: int):
        super().__init__(
            f'{keyword} metadata for metric family "{family_name}" appears after its samples',
            line_number,
        )
        self.family_name = family_name
        self.keyword = keyword


class DuplicateMetadataError(ParseError):
    kind = "parse_duplicate_metadata"

    def __init__(self, family_name: str, keyword: str, line_number: int):
        super().__init__(f'duplicate {keyword} metadata for metric family "{family_name}"', line_number)
        self.family_name = family_name
        self.keyword = keyword


class FamilyKindConflictError(ParseError):
    kind = "parse_family_kind_conflict"

    def __init__(self, family_name: str, declared: str, conflicting: str, line_number: int):
        super().__init__(
            f'metric family "{family_name}" declared as both {declared} and {conflicting}',
            line_number,
        )
        self.family_name = family_name


class UnknownFamilyError(ParseError):
    kind = "parse_unknown_family"

    def __init__(self, sample_name: str, line_number: int):
        super().__init__(f'sample "{sample_name}" does not belong to a declared metric family', line_number)
        self.sample_name = sample_name


class InterleavedFamilyError(ParseError):
    kind = "parse_interleaved_family"

    def __init__(self, family_name: str, line_number: int):
        super().__init__(f'samples for metric family "{family_name}" are not contiguous', line_number)
        self.family_name = family_name


class MetricNameChangedError(ParseError):
    """A metadata block switched family names before its samples arrived"""

    kind = "parse_metric_name_changed"

    def __init__(self, previous: str, current: str, line_number: int):
        super().__init__(f'metric name changed from "{previous}" to "{current}"', line_number)
        self.previous = previous
        self.current = current


class DuplicateLabelNameError(ParseError):
    kind = "parse_duplicate_label_name"

    def __init__(self, label_name: str, line_number: int):
        super().__init__(f'duplicate label name "{label_name}"', line_number)
        self.label_name = label_name
