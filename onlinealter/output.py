"""Classification of the tool's line-oriented output."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Pattern, Sequence


class OutputKind(str, Enum):
    """Classification tags attached to each output line."""

    PROGRESS = "progress"
    INFO = "info"
    COPY_STAT = "copy-stat"
    WARNING = "warning"
    ERROR = "error"


class OutputStream(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True, slots=True)
class OutputLine:
    """One line read from the tool, with its sanitized rendering."""

    text: str
    kind: OutputKind
    stream: OutputStream = OutputStream.STDOUT
    raw: str = field(default="", repr=False, compare=False)

    @property
    def is_error(self) -> bool:
        return self.kind is OutputKind.ERROR


@dataclass(frozen=True, slots=True)
class Rule:
    kind: OutputKind
    pattern: Pattern[str]

    def matches(self, line: str) -> bool:
        return self.pattern.search(line) is not None


def _rule(kind: OutputKind, pattern: str) -> Rule:
    return Rule(kind, re.compile(pattern, re.IGNORECASE))


DEFAULT_RULES: tuple[Rule, ...] = (
    # "ERROR 1062 (23000): ...", "Error altering new table ...", "# Error: ..."
    _rule(OutputKind.ERROR, r"^\s*(?:#\s*)?error\b"),
    # MySQL error numbers reported mid-line: "errno: 150", "Error code 1205"
    _rule(OutputKind.ERROR, r"\b(?:errno|error(?:\s+code)?)[\s:=#]*[1-9]\d{2,4}\b"),
    _rule(OutputKind.ERROR, r"\bDB[DI](?:::\S+)?\b.*\bfailed\b"),
    _rule(OutputKind.ERROR, r"\bwas not altered\b"),
    _rule(OutputKind.ERROR, r"^\s*(?:cannot connect to mysql|died\b|aborted\b)"),
    # Perl die() trailer
    _rule(OutputKind.ERROR, r"\bat \S+ line \d+\.?\s*$"),
    _rule(OutputKind.PROGRESS, r"\b\d{1,3}(?:\.\d+)?%"),
    _rule(OutputKind.COPY_STAT, r"\bcop(?:y|ying|ied)\b.*\brows?\b"),
    # --statistics table: "# INSERT     1"
    _rule(OutputKind.COPY_STAT, r"^#\s+[a-z_]+\s+\d+\s*$"),
    _rule(OutputKind.WARNING, r"^\s*(?:#\s*)?warn(?:ing)?\b"),
    _rule(OutputKind.WARNING, r"\bdeprecated\b"),
)


class OutputClassifier:
    """Ordered pattern rules; the first match decides, default ``info``."""

    def __init__(self, rules: Sequence[Rule] | None = None, *, extra_rules: Iterable[Rule] = ()) -> None:
        self._rules = tuple(extra_rules) + tuple(DEFAULT_RULES if rules is None else rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def classify(self, line: str) -> OutputKind:
        for rule in self._rules:
            if rule.matches(line):
                return rule.kind
        return OutputKind.INFO


_DEFAULT = OutputClassifier()


def classify(line: str) -> OutputKind:
    return _DEFAULT.classify(line)


__all__ = [
    "DEFAULT_RULES",
    "OutputClassifier",
    "OutputKind",
    "OutputLine",
    "OutputStream",
    "Rule",
    "classify",
]
