from __future__ import annotations

import pytest

from core.errors import RuleLoadError
from core.rules_engine import TransformationEngine, build_rule_set, match_rule_set

TAGGED = {
    "name": "tagged",
    "translate": [["tS", "tʃ"], ["S", "ʃ"], ["@", "ə"]],
    "rules": [{"pattern": r"(?<!\S)x/([^/]+)/", "template": "/{1}/"}],
}


def _engine(*documents: dict) -> TransformationEngine:
    return TransformationEngine(
        build_rule_set(document, f"set{index}") for index, document in enumerate(documents)
    )


def test_search_empty_and_unmatched_text_returns_nothing() -> None:
    engine = _engine(TAGGED)
    assert engine.search("") == []
    assert engine.search("nothing to see here") == []
    assert engine.transform("nothing to see here") == ""


def test_tagged_group_is_translated() -> None:
    engine = _engine(TAGGED)
    assert engine.transform("say x/tS@/ please") == "/tʃə/"


def test_matches_within_a_set_are_in_textual_order() -> None:
    engine = _engine(TAGGED)
    matches = engine.search("x/S/ and x/@/")
    assert [m.text for m in matches] == ["/ʃ/", "/ə/"]
    assert matches[0].start == 0 and matches[0].end == 4
    assert engine.transform("x/S/ and x/@/") == "/ʃ/\n/ə/"


def test_first_declared_rule_wins_over_longer_match() -> None:
    engine = _engine(
        {"rules": [{"pattern": "ab", "template": "short"}, {"pattern": "abc", "template": "long"}]}
    )
    assert engine.transform("abc") == "short"

    reversed_engine = _engine(
        {"rules": [{"pattern": "abc", "template": "long"}, {"pattern": "ab", "template": "short"}]}
    )
    assert reversed_engine.transform("abc") == "long"


def test_matches_do_not_overlap() -> None:
    engine = _engine({"rules": [{"pattern": "aa", "template": "X"}]})
    matches = engine.search("aaa")
    assert len(matches) == 1
    assert (matches[0].start, matches[0].end) == (0, 2)


def test_rule_sets_are_joined_in_load_order_with_blank_line() -> None:
    engine = _engine(
        {"name": "first", "rules": [{"pattern": "cat", "literal": True, "template": "CAT"}]},
        {"name": "middle", "rules": [{"pattern": "dog", "literal": True, "template": "DOG"}]},
        {"name": "last", "rules": [{"pattern": "cat", "literal": True, "template": "KATZE"}]},
    )
    assert engine.transform("a cat") == "CAT\n\nKATZE"


def test_custom_separator_within_a_set() -> None:
    engine = _engine({"separator": " | ", "rules": [{"pattern": "a", "template": "A"}]})
    assert engine.transform("aXa") == "A | A"


def test_literal_pattern_is_not_a_regex() -> None:
    engine = _engine({"rules": [{"pattern": "a.b", "literal": True, "template": "hit"}]})
    assert engine.transform("axb") == ""
    assert engine.transform("a.b") == "hit"


def test_named_groups_and_whole_match() -> None:
    engine = _engine({"rules": [{"pattern": r"(?P<word>\w+)!", "template": "{0} -> <{word}>"}]})
    assert engine.transform("hey!") == "hey! -> <hey>"


def test_translation_table_prefers_earlier_entry() -> None:
    rule_set = build_rule_set(
        {"translate": [["t", "T"], ["tS", "X"]], "rules": [{"pattern": "<(.*?)>", "template": "{1}"}]},
        "order",
    )
    assert [m.text for m in match_rule_set("<tS>", rule_set)] == ["TS"]


def test_empty_matches_are_skipped() -> None:
    engine = _engine({"rules": [{"pattern": "a*", "template": "[{0}]"}]})
    assert engine.transform("baa") == "[aa]"


def test_default_name_comes_from_file_stem() -> None:
    assert build_rule_set({"rules": []}, "xsampa").name == "xsampa"
    assert build_rule_set(None, "empty").rules == ()


@pytest.mark.parametrize(
    "document",
    [
        ["not", "a", "mapping"],
        {"rules": "nope"},
        {"rules": [{"template": "x"}]},
        {"rules": [{"pattern": "a"}]},
        {"rules": [{"pattern": "(unclosed", "template": "x"}]},
        {"rules": [{"pattern": "(a)", "template": "{2}"}]},
        {"rules": [{"pattern": "a", "template": "{name}"}]},
        {"rules": [{"pattern": r"<(\w+)\|(\w*)>", "template": "{1:{2}}"}]},
        {"rules": [{"pattern": "(a)", "template": "{1"}]},
        {"translate": [["only-one"]], "rules": []},
        {"translate": [["", "x"]], "rules": []},
        {"separator": 3, "rules": []},
    ],
)
def test_malformed_documents_fail_at_load(document) -> None:
    with pytest.raises(RuleLoadError):
        build_rule_set(document, "broken")


def test_fixed_format_spec_renders_any_group_text() -> None:
    engine = _engine({"rules": [{"pattern": r"<(\w+)\|(\w*)>", "template": "[{1:>5}]"}]})
    assert engine.transform("<ab|xyz>") == "[   ab]"


def test_sets_rendering_nothing_leave_the_message_unparsed() -> None:
    engine = _engine(
        {"name": "first", "rules": [{"pattern": "q", "template": ""}]},
        {"name": "second", "rules": [{"pattern": "q", "template": ""}]},
    )
    assert len(engine.search("q q")) == 4
    assert engine.transform("q q") == ""


def test_empty_renders_are_dropped_from_a_block() -> None:
    engine = _engine(
        {"rules": [{"pattern": "q", "template": ""}, {"pattern": "a", "template": "A"}]},
        {"name": "other", "rules": [{"pattern": "q", "template": ""}]},
    )
    assert engine.transform("qaq") == "A"
