"""Rule compilation and matching logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import groupby
import re
from string import Formatter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.errors import RuleLoadError

BLOCK_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class Rule:
    """Compiled rule: a pattern plus the template used to render a match."""

    raw_pattern: str
    pattern: re.Pattern
    template: str


@dataclass(frozen=True)
class RuleSet:
    """Named, ordered collection of rules parsed from one rule document."""

    name: str
    rules: Tuple[Rule, ...]
    separator: str = "\n"
    translation: Tuple[Tuple[str, str], ...] = ()
    _translation_pattern: Optional[re.Pattern] = field(default=None, repr=False, compare=False)
    _translation_map: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)

    def translate(self, text: str) -> str:
        """Apply the translation table, earliest-declared key winning at each position."""

        if self._translation_pattern is None or not text:
            return text
        return self._translation_pattern.sub(lambda m: self._translation_map[m.group(0)], text)


@dataclass(frozen=True)
class MatchResult:
    """Rendered output of one rule firing at one location of the input."""

    rule_set: str
    rule_index: int
    start: int
    end: int
    text: str


def _compile_pattern(raw: str, literal: bool, origin: str) -> re.Pattern:
    source = re.escape(raw) if literal else raw
    try:
        return re.compile(source)
    except re.error as exc:
        raise RuleLoadError(f"{origin}: invalid pattern {raw!r}: {exc}") from exc


def _check_template(pattern: re.Pattern, template: str, origin: str) -> None:
    try:
        fields = list(Formatter().parse(template))
    except ValueError as exc:
        raise RuleLoadError(f"{origin}: malformed template {template!r}: {exc}") from exc
    # Nested fields would turn matched text into a format spec.
    for _, field_name, format_spec, _ in fields:
        if field_name is not None and format_spec and "{" in format_spec:
            raise RuleLoadError(f"{origin}: template {template!r} nests a field inside a format spec")

    # Dry-run the template with empty strings so bad group references fail at load time.
    positional = [""] * (pattern.groups + 1)
    named = {name: "" for name in pattern.groupindex}
    try:
        template.format(*positional, **named)
    except (IndexError, KeyError, ValueError, AttributeError) as exc:
        raise RuleLoadError(
            f"{origin}: template {template!r} does not fit pattern {pattern.pattern!r}: {exc!r}"
        ) from exc


def _build_translation(raw_table: Any, origin: str) -> Tuple[Tuple[str, str], ...]:
    if raw_table is None:
        return ()
    if not isinstance(raw_table, list):
        raise RuleLoadError(f"{origin}: 'translate' must be a list of [from, to] pairs")

    pairs: List[Tuple[str, str]] = []
    for entry in raw_table:
        if (
            not isinstance(entry, (list, tuple))
            or len(entry) != 2
            or not all(isinstance(part, str) for part in entry)
        ):
            raise RuleLoadError(f"{origin}: translation entry must be a [from, to] pair of strings: {entry!r}")
        source, target = entry
        if not source:
            raise RuleLoadError(f"{origin}: translation entry has an empty source: {entry!r}")
        pairs.append((source, target))
    return tuple(pairs)


def build_rule_set(document: Any, default_name: str) -> RuleSet:
    """Validate one parsed rule document and compile it into a RuleSet.

    Rule documents are mappings with an optional ``name``, ``separator`` and
    ``translate`` table and a ``rules`` list. Each rule needs a ``pattern``
    and a ``template``; ``literal: true`` treats the pattern as plain text.
    """

    origin = default_name
    if document is None:
        document = {}
    if not isinstance(document, Mapping):
        raise RuleLoadError(f"{origin}: rule document must be a mapping")

    name = str(document.get("name") or default_name)
    origin = f"{default_name} ({name})" if name != default_name else name

    separator = document.get("separator", "\n")
    if not isinstance(separator, str):
        raise RuleLoadError(f"{origin}: 'separator' must be a string")

    raw_rules = document.get("rules", []) or []
    if not isinstance(raw_rules, list):
        raise RuleLoadError(f"{origin}: 'rules' must be a list")

    compiled: List[Rule] = []
    for position, raw in enumerate(raw_rules):
        rule_origin = f"{origin} rule #{position + 1}"
        if not isinstance(raw, Mapping):
            raise RuleLoadError(f"{rule_origin}: rule must be a mapping")
        raw_pattern = raw.get("pattern")
        template = raw.get("template")
        if not isinstance(raw_pattern, str) or not raw_pattern:
            raise RuleLoadError(f"{rule_origin}: missing 'pattern'")
        if not isinstance(template, str):
            raise RuleLoadError(f"{rule_origin}: missing 'template'")
        pattern = _compile_pattern(raw_pattern, bool(raw.get("literal", False)), rule_origin)
        _check_template(pattern, template, rule_origin)
        compiled.append(Rule(raw_pattern=raw_pattern, pattern=pattern, template=template))

    translation = _build_translation(document.get("translate"), origin)
    translation_pattern = None
    translation_map: Dict[str, str] = {}
    if translation:
        for source, target in translation:
            translation_map.setdefault(source, target)
        # Python alternation tries branches left to right, so declaration order wins.
        translation_pattern = re.compile("|".join(re.escape(source) for source, _ in translation))

    return RuleSet(
        name=name,
        rules=tuple(compiled),
        separator=separator,
        translation=translation,
        _translation_pattern=translation_pattern,
        _translation_map=translation_map,
    )


def _render(rule_set: RuleSet, rule: Rule, match: re.Match) -> str:
    positional = [match.group(0)]
    positional.extend(rule_set.translate(group or "") for group in match.groups())
    named = {key: rule_set.translate(value or "") for key, value in match.groupdict().items()}
    return rule.template.format(*positional, **named)


def match_rule_set(text: str, rule_set: RuleSet) -> List[MatchResult]:
    """Return every non-overlapping match of one rule set, in textual order.

    Matching logic:
    - At each position the rules are tried in declaration order and the
      first one that matches wins, even if a later rule would match more.
    - Empty matches are ignored so the scan always makes progress.
    - Scanning resumes at the end of the consumed match.
    """

    results: List[MatchResult] = []
    position = 0
    length = len(text)
    while position < length:
        for index, rule in enumerate(rule_set.rules):
            match = rule.pattern.match(text, position)
            if match is None or match.end() == position:
                continue
            results.append(
                MatchResult(
                    rule_set=rule_set.name,
                    rule_index=index,
                    start=match.start(),
                    end=match.end(),
                    text=_render(rule_set, rule, match),
                )
            )
            position = match.end()
            break
        else:
            position += 1
    return results


class TransformationEngine:
    """Runs every loaded rule set against input text."""

    def __init__(self, rule_sets: Iterable[RuleSet]) -> None:
        self._rule_sets = tuple(rule_sets)
        self._separators = {rule_set.name: rule_set.separator for rule_set in self._rule_sets}

    @property
    def rule_sets(self) -> Tuple[RuleSet, ...]:
        return self._rule_sets

    def search(self, text: str) -> List[MatchResult]:
        """Return all matches, grouped by rule set in load order."""

        matches: List[MatchResult] = []
        if not text:
            return matches
        for rule_set in self._rule_sets:
            matches.extend(match_rule_set(text, rule_set))
        return matches

    def render(self, matches: Sequence[MatchResult]) -> str:
        """Join matches into one text block per rule set, blocks split by a blank line."""

        blocks = []
        for name, group in groupby(matches, key=lambda m: m.rule_set):
            separator = self._separators.get(name, "\n")
            block = separator.join(match.text for match in group if match.text)
            if block:
                blocks.append(block)
        return BLOCK_SEPARATOR.join(blocks)

    def transform(self, text: str) -> str:
        """Return the rendered output for ``text``; empty when nothing matched."""

        return self.render(self.search(text))
