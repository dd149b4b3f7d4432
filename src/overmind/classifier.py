"""
Classification of test report summaries.

Recognizes two report formats:
1. Unit-style: "4 tests, 9 assertions, 1 failures, 0 errors"
2. Spec-style: "12 examples, 0 failures, 2 not implemented"

Text containing the token "tests" is only ever read as unit-style.
The first summary found in the text decides the verdict.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Verdict(Enum):
    """Outcome of a test run."""
    PASS = "pass"
    FAIL = "fail"
    UNRECOGNIZED = "unrecognized"


class ReportKind(Enum):
    UNIT = "unit"
    SPEC = "spec"


@dataclass(frozen=True)
class ReportGrammar:
    """A summary line format and the counts that make a run fail."""
    kind: ReportKind
    pattern: re.Pattern
    failure_fields: tuple[str, ...]

    def match(self, text: str) -> Optional[re.Match]:
        return self.pattern.search(text)

    def counts(self, match: re.Match) -> dict[str, int]:
        """Extract every numeric field; absent optional fields count as 0."""
        return {name: int(value or 0) for name, value in match.groupdict().items()}


UNIT_GRAMMAR = ReportGrammar(
    kind=ReportKind.UNIT,
    pattern=re.compile(
        r'(?P<tests>\d+)\s+tests?,\s*'
        r'(?P<assertions>\d+)\s+assertions?,\s*'
        r'(?P<failures>\d+)\s+failures?'
        r'(?:,\s*(?P<errors>\d+)\s+errors?)?'
    ),
    failure_fields=("failures", "errors"),
)

SPEC_GRAMMAR = ReportGrammar(
    kind=ReportKind.SPEC,
    pattern=re.compile(
        r'(?P<examples>\d+)\s+examples?,\s*'
        r'(?P<failures>\d+)\s+failures?'
        r'(?:,\s*(?P<pending>\d+)\s+not implemented)?'
    ),
    failure_fields=("failures",),
)

# Token that forces unit-style parsing
UNIT_TOKEN = "tests"


@dataclass(frozen=True)
class TestOutcome:
    """Classified result of one worker run."""
    __test__ = False  # not a pytest test class

    verdict: Verdict
    summary: str = ""
    kind: Optional[ReportKind] = None
    counts: dict[str, int] = field(default_factory=dict, compare=False)

    @property
    def matched(self) -> bool:
        return self.verdict is not Verdict.UNRECOGNIZED

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    @property
    def failed(self) -> bool:
        return self.verdict is Verdict.FAIL

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "verdict": self.verdict.value,
            "summary": self.summary,
            "kind": self.kind.value if self.kind else None,
            "counts": dict(self.counts),
        }


UNRECOGNIZED = TestOutcome(Verdict.UNRECOGNIZED)


def select_grammar(text: str) -> ReportGrammar:
    """Pick the grammar a report must be read with."""
    return UNIT_GRAMMAR if UNIT_TOKEN in text else SPEC_GRAMMAR


def classify(text: str) -> TestOutcome:
    """Classify accumulated worker output.

    Args:
        text: Full output of a worker run

    Returns:
        TestOutcome; verdict UNRECOGNIZED when no summary was found
    """
    if not text:
        return UNRECOGNIZED

    grammar = select_grammar(text)
    match = grammar.match(text)
    if match is None:
        return UNRECOGNIZED

    counts = grammar.counts(match)
    failures = sum(counts[name] for name in grammar.failure_fields)
    return TestOutcome(
        verdict=Verdict.FAIL if failures > 0 else Verdict.PASS,
        summary=match.group(0),
        kind=grammar.kind,
        counts=counts,
    )
