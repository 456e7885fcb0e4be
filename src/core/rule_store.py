"""Loading rule documents from a directory into an immutable store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Tuple, Union

import yaml

from core.errors import RuleLoadError
from core.rules_engine import RuleSet, build_rule_set

LOGGER = logging.getLogger(__name__)

RULE_FILE_SUFFIXES = (".yaml", ".yml")


class RuleSetStore:
    """Read-only, ordered collection of rule sets loaded at startup."""

    def __init__(self, rule_sets: Iterable[RuleSet]) -> None:
        self._rule_sets = tuple(rule_sets)

    def all_rule_sets(self) -> Tuple[RuleSet, ...]:
        return self._rule_sets

    def __len__(self) -> int:
        return len(self._rule_sets)


def _read_document(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise RuleLoadError(f"{path.name}: malformed YAML: {exc}") from exc
    except OSError as exc:
        raise RuleLoadError(f"{path.name}: cannot be read: {exc}") from exc


def load_rule_sets(directory: Union[str, Path]) -> RuleSetStore:
    """Load every rule document in ``directory`` in file-name order.

    Any malformed document fails the whole load; there is no partial store.
    """

    root = Path(directory)
    if not root.is_dir():
        raise RuleLoadError(f"Rule directory not found: {root}")

    paths = sorted(
        (path for path in root.iterdir() if path.is_file() and path.suffix.lower() in RULE_FILE_SUFFIXES),
        key=lambda path: path.name,
    )

    rule_sets = []
    seen_names: dict[str, str] = {}
    for path in paths:
        document = _read_document(path)
        try:
            rule_set = build_rule_set(document, path.stem)
        except RuleLoadError as exc:
            raise RuleLoadError(f"{path.name}: {exc}") from exc
        if rule_set.name in seen_names:
            raise RuleLoadError(
                f"{path.name}: rule set name {rule_set.name!r} already used by {seen_names[rule_set.name]}"
            )
        seen_names[rule_set.name] = path.name
        rule_sets.append(rule_set)
        LOGGER.debug("Loaded rule set %s (%s rules) from %s", rule_set.name, len(rule_set.rules), path.name)

    LOGGER.info("%s rule sets are loaded from %s", len(rule_sets), root)
    return RuleSetStore(rule_sets)
