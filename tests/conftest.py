"""Shared fixtures: tiny Yomitan archives built on the fly."""

import json
import zipfile
from pathlib import Path

import pytest

from hoshi_lookup import DictionaryStore, DictionaryType, LookupContext


def write_archive(path: Path, index, banks=None, raw_files=None) -> Path:
    """
    Write a dictionary archive.

    Args:
        index: Manifest dict (or None to omit index.json)
        banks: {file name: JSON-able records}
        raw_files: {file name: bytes} written verbatim
    """
    with zipfile.ZipFile(path, "w") as archive:
        if index is not None:
            archive.writestr("index.json", json.dumps(index, ensure_ascii=False))
        for name, records in (banks or {}).items():
            archive.writestr(name, json.dumps(records, ensure_ascii=False))
        for name, data in (raw_files or {}).items():
            archive.writestr(name, data)
    return path


def term(expression, reading, glossary, rules="", sequence=0, def_tags="", term_tags="", score=0):
    return [expression, reading, def_tags, rules, score, glossary, sequence, term_tags]


@pytest.fixture
def make_term_archive(tmp_path):
    def _make(title, records, file_name=None, fmt=3):
        return write_archive(
            tmp_path / (file_name or f"{title}.zip"),
            {"title": title, "format": fmt, "revision": "1"},
            {"term_bank_1.json": records},
        )
    return _make


@pytest.fixture
def make_meta_archive(tmp_path):
    def _make(title, records, file_name=None):
        return write_archive(
            tmp_path / (file_name or f"{title}.zip"),
            {"title": title, "format": 3, "revision": "1"},
            {"term_meta_bank_1.json": records},
        )
    return _make


@pytest.fixture
def store_root(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def store(store_root):
    store = DictionaryStore(store_root)
    store.load_dictionaries()
    yield store
    store.close()


@pytest.fixture
def context(store_root):
    context = LookupContext(store_root).open()
    yield context
    context.close()


@pytest.fixture
def jmdict_archive(make_term_archive):
    return make_term_archive("JMdict", [
        term("食べる", "たべる", ["to eat"], rules="v1", sequence=1358280, def_tags="v1 vt"),
        term("食べ物", "たべもの", ["food"], sequence=1358300, def_tags="n"),
        term("見る", "みる", ["to see"], rules="v1", sequence=1259290),
        term("書く", "かく", ["to write"], rules="v5", sequence=1327190),
        term("取る", "とる", ["to take"], rules="v5", sequence=1326980),
        term("高い", "たかい", ["high", "expensive"], rules="adj-i", sequence=1279480),
        term("とき", "とき", ["time; when"], sequence=1315840),
        term("今日", "きょう", ["today"], sequence=1579470),
        term("今", "いま", ["now"], sequence=1188780),
    ])


def install(context_or_store, archive, dict_type=DictionaryType.TERM):
    store = getattr(context_or_store, "store", context_or_store)
    return store.import_dictionary(archive, dict_type)
