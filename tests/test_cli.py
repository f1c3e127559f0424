"""Smoke tests for the hoshi-lookup command line."""

import json

import pytest

from conftest import term
from hoshi_lookup.cli import main


def run_cli(*argv):
    with pytest.raises(SystemExit) as exc:
        main(list(argv))
    return exc.value.code


def test_import_list_and_lookup(tmp_path, jmdict_archive, make_meta_archive, capsys):
    root = str(tmp_path / "cli-store")
    assert run_cli("--root", root, "import", str(jmdict_archive)) == 0
    assert "Imported JMdict (term #0)" in capsys.readouterr().out

    freq = make_meta_archive("JPDB", [["食べる", "freq", 812]])
    assert run_cli("--root", root, "import", str(freq), "--type", "frequency") == 0
    capsys.readouterr()

    assert run_cli("--root", root, "list") == 0
    out = capsys.readouterr().out
    assert "0 [on ] JMdict rev 1" in out
    assert "Pitch Dictionaries\n  (none)" in out

    assert run_cli("--root", root, "lookup", "食べたとき") == 0
    out = capsys.readouterr().out
    assert out.startswith("食べる【たべる】 ← 食べた (past)")
    assert "# JPDB: 812" in out
    assert "• to eat" in out

    assert run_cli("--root", root, "lookup", "--json", "--offset", "3", "食べたとき") == 0
    [entry] = json.loads(capsys.readouterr().out)
    assert entry["expression"] == "とき"


def test_catalog_commands(tmp_path, make_term_archive, capsys):
    root = str(tmp_path / "cli-store")
    for title in ("A", "B"):
        run_cli("--root", root, "import", str(make_term_archive(title, [term("語", "ご", ["word"])])))
    capsys.readouterr()

    assert run_cli("--root", root, "disable", "0") == 0
    assert run_cli("--root", root, "move", "1", "0") == 0
    terms = capsys.readouterr().out.rsplit("Term Dictionaries", 1)[1].split("Frequency Dictionaries")[0]
    assert terms.index("B") < terms.index("A")
    assert "1 [off] A" in terms

    assert run_cli("--root", root, "delete", "0") == 0
    assert "Deleted B" in capsys.readouterr().out


def test_no_results(tmp_path, capsys):
    assert run_cli("--root", str(tmp_path / "empty"), "lookup", "。") == 0
    assert capsys.readouterr().out.strip() == "No results"


def test_errors_exit_nonzero(tmp_path, capsys):
    root = str(tmp_path / "cli-store")
    assert run_cli("--root", root, "import", str(tmp_path / "missing.zip")) == 1
    assert capsys.readouterr().err.startswith("Error: ")

    assert run_cli("--root", root, "delete", "3") == 1
    assert "Error: " in capsys.readouterr().err
