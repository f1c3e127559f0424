"""Tests for the suffix-stripping deinflector."""

import io

import pytest

from hoshi_lookup.deinflect import (
    Deinflection,
    DeinflectionRule,
    Deinflector,
    load_rules,
    normalize_rule_class,
    parse_rules,
)


def rule(name, kana_in, kana_out, rules_in="", rules_out=""):
    return DeinflectionRule(name, kana_in, kana_out, frozenset(rules_in.split()), frozenset(rules_out.split()))


def candidates(deinflector, text):
    return {d.term: d for d in deinflector.deinflect(text)}


def test_identity_candidate_is_first():
    results = Deinflector().deinflect("食べたとき")
    assert results[0] == Deinflection(term="食べたとき")


def test_empty_input_yields_nothing():
    assert Deinflector().deinflect("") == []


def test_past_tense_of_ichidan_verb():
    found = candidates(Deinflector(), "食べた")
    assert found["食べる"].trace == ("past",)
    assert "v1" in found["食べる"].rules


def test_chained_rules_are_recorded_oldest_first():
    found = candidates(Deinflector(), "食べなかった")
    assert found["食べる"].trace == ("past", "negative")

    found = candidates(Deinflector(), "食べました")
    assert found["食べる"].trace == ("past", "polite")


def test_causative_passive_chain():
    found = candidates(Deinflector(), "食べさせられた")
    assert found["食べる"].trace == ("past", "potential or passive", "causative")


def test_progressive_goes_through_te_form():
    found = candidates(Deinflector(), "書いている")
    assert found["書く"].trace == ("progressive or perfect", "-te")
    assert found["書く"].rules == frozenset({"v5"})


def test_adjective_forms():
    found = candidates(Deinflector(), "高かった")
    assert found["高い"].trace == ("past",)
    found = candidates(Deinflector(), "高くない")
    assert found["高い"].trace == ("negative",)


def test_rule_requires_compatible_word_class():
    # "ない" turns a candidate into adj-i; the polite rule only accepts masu forms
    table = [rule("negative", "ない", "る", "adj-i", "v1"), rule("polite", "ます", "る", "masu", "v1")]
    found = candidates(Deinflector(table), "食べない")
    assert found["食べる"].trace == ("negative",)
    assert "食べな" not in found


def test_terminal_rule_cannot_follow_another_rule():
    table = [rule("a", "x", "y", "", "v1"), rule("b", "y", "z", "", "v1")]
    found = candidates(Deinflector(table), "wx")
    assert "wy" in found
    assert "wz" not in found


def test_mutually_inverse_rules_terminate():
    table = [rule("ab", "a", "b", "k", "k"), rule("ba", "b", "a", "k", "k")]
    results = Deinflector(table, max_depth=50).deinflect("xa")
    assert [d.term for d in results] == ["xa", "xb"]


def test_depth_bound_limits_chain_length():
    table = [rule("grow", "a", "aa", "k", "k")]
    results = Deinflector(table, max_depth=3).deinflect("a")
    assert [d.term for d in results] == ["a", "aa", "aaa", "aaaa"]
    assert max(d.depth for d in results) == 3


def test_depth_zero_returns_identity_only():
    assert [d.term for d in Deinflector(max_depth=0).deinflect("食べた")] == ["食べた"]


@pytest.mark.parametrize("text", ["", "あ", "ーーーー", "させられさせられさせられた", "たたたたたたたたたたたたたたたた", "abc"])
def test_bundled_table_terminates_for_awkward_inputs(text):
    results = Deinflector().deinflect(text)
    terms = [d.term for d in results]
    assert len(terms) == len(set(terms))
    assert all(d.depth <= Deinflector().max_depth for d in results)


def test_duplicate_base_forms_keep_shortest_trace():
    table = [
        rule("long1", "c", "b", "", "k"),
        rule("long2", "b", "a", "k", "k"),
        rule("short", "c", "a", "", "k"),
    ]
    found = candidates(Deinflector(table), "xc")
    assert found["xa"].trace == ("short",)


def test_same_depth_duplicates_widen_word_classes():
    found = candidates(Deinflector(), "取られる")
    assert found["取る"].rules >= {"v1", "v5"}


def test_deinflection_is_deterministic():
    first = Deinflector().deinflect("食べさせられなかった")
    second = Deinflector().deinflect("食べさせられなかった")
    assert first == second


def test_accepts_checks_entry_rule_classes():
    assert Deinflection("食べる").accepts(())
    assert Deinflection("食べる", frozenset({"v1"}), ("past",)).accepts(("v1",))
    assert Deinflection("取る", frozenset({"v5"}), ("past",)).accepts(("v5r", "vt"))
    assert not Deinflection("食べる", frozenset({"v1"}), ("past",)).accepts(("n",))


def test_normalize_rule_class():
    assert normalize_rule_class("v5k-s") == "v5"
    assert normalize_rule_class("v1-s") == "v1"
    assert normalize_rule_class("adj-ix") == "adj-i"
    assert normalize_rule_class("n") is None


def test_malformed_rule_rows_are_skipped(caplog):
    table = io.StringIO(
        "name\tkana_in\tkana_out\trules_in\trules_out\n"
        "past\tた\tる\tta\tv1\n"
        "broken\tた\n"
        "\tた\tる\t\tv1\n"
        "noinput\t\tる\t\tv1\n"
        "-te\tて\tる\tte\tv1\n"
    )
    rules = parse_rules(table)
    assert [r.name for r in rules] == ["past", "-te"]
    assert "Skipping malformed deinflection rule" in caplog.text


def test_bundled_table_loads_once():
    assert load_rules() is load_rules()
    assert len(load_rules()) > 100


def test_describe_uses_rule_descriptions():
    tags = Deinflector().describe(["past", "unknown-rule"])
    assert tags[0].name == "past"
    assert tags[0].description.startswith("Past")
    assert tags[1].description == "unknown-rule"
