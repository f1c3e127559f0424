"""Tests for LookupContext: session lifecycle and background import."""

import asyncio
import threading
import time

import pytest

from conftest import install, term
from hoshi_lookup import (
    DictionaryType,
    ImportCancelled,
    ImportInProgress,
    LookupContext,
    LookupSettings,
    open_context,
)


def test_open_context_reloads_catalog(store_root, jmdict_archive):
    with open_context(store_root) as ctx:
        install(ctx, jmdict_archive)

    with open_context(store_root) as ctx:
        assert [d.name for d in ctx.store.dictionaries(DictionaryType.TERM)] == ["JMdict"]
        assert ctx.lookup("食べた", 0)[0].expression == "食べる"


def test_context_manager_protocol(store_root):
    with LookupContext(store_root) as ctx:
        assert ctx.lookup("食べた", 0) == []


def test_settings_reach_the_deinflector(store_root):
    context = LookupContext(store_root, LookupSettings(max_deinflection_depth=0))
    assert [d.term for d in context.deinflector.deinflect("食べた")] == ["食べた"]
    context.close()


def test_async_import(context, jmdict_archive):
    info = asyncio.run(context.import_dictionary_async(jmdict_archive, DictionaryType.TERM))
    assert info.name == "JMdict"
    assert context.lookup("食べた", 0)[0].expression == "食べる"
    assert not context.store.is_importing


def _blocking_import(started):
    def _import(archive_path, dict_type, cancel_event):
        started.set()
        assert cancel_event.wait(5)
        raise ImportCancelled("stopped")
    return _import


def test_async_import_timeout_signals_cancel(context, jmdict_archive, monkeypatch):
    started = threading.Event()
    monkeypatch.setattr(context.store, "_import", _blocking_import(started))

    with pytest.raises(ImportCancelled):
        asyncio.run(context.import_dictionary_async(jmdict_archive, DictionaryType.TERM, timeout=0.05))
    assert started.is_set()
    assert not context.store.is_importing


def test_async_import_task_cancel_signals_cancel(context, jmdict_archive, monkeypatch):
    started = threading.Event()
    monkeypatch.setattr(context.store, "_import", _blocking_import(started))

    async def _run():
        task = asyncio.ensure_future(context.import_dictionary_async(jmdict_archive, DictionaryType.TERM))
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(_run())


def test_overlapping_async_imports_fail_fast(context, make_term_archive, monkeypatch):
    first_archive = make_term_archive("A", [term("犬", "いぬ", ["dog"])])
    second_archive = make_term_archive("B", [term("猫", "ねこ", ["cat"])])
    started = threading.Event()
    release = threading.Event()
    real_import = context.store._import

    def held_import(archive_path, dict_type, cancel_event):
        started.set()
        assert release.wait(5)
        return real_import(archive_path, dict_type, cancel_event)

    monkeypatch.setattr(context.store, "_import", held_import)

    async def _run():
        first = asyncio.ensure_future(context.import_dictionary_async(first_archive, DictionaryType.TERM))
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
        try:
            with pytest.raises(ImportInProgress):
                await context.import_dictionary_async(second_archive, DictionaryType.TERM)
            with pytest.raises(ImportInProgress):
                context.import_dictionary(second_archive, DictionaryType.TERM)
        finally:
            release.set()
        return await first

    info = asyncio.run(_run())
    assert info.name == "A"
    assert [d.name for d in context.store.dictionaries(DictionaryType.TERM)] == ["A"]
    assert not context.store.is_importing


def test_import_finishing_after_timeout_is_reported(context, jmdict_archive, monkeypatch):
    committing = threading.Event()
    real_commit = context.store._commit_import

    def slow_commit(*args, **kwargs):
        committing.set()
        time.sleep(0.5)
        return real_commit(*args, **kwargs)

    monkeypatch.setattr(context.store, "_commit_import", slow_commit)

    try:
        info = asyncio.run(context.import_dictionary_async(jmdict_archive, DictionaryType.TERM, timeout=0.2))
    except ImportCancelled:
        # The timeout fired before the commit started, so nothing may be committed
        assert not committing.is_set()
        assert context.store.dictionaries(DictionaryType.TERM) == []
    else:
        assert committing.is_set()
        assert [d.name for d in context.store.dictionaries(DictionaryType.TERM)] == [info.name]


def test_real_import_cancelled_leaves_nothing(context, jmdict_archive):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(ImportCancelled):
        context.import_dictionary(jmdict_archive, DictionaryType.TERM, cancel)
    assert context.store.dictionaries(DictionaryType.TERM) == []
    assert not (context.store.root / "term" / "JMdict").exists()
