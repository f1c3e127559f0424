"""
Explicitly owned lookup context.

A LookupContext bundles the dictionary store, the deinflector and the lookup
engine for one storage root. The host application creates it at startup,
passes it to whatever needs lookups or catalog management, and closes it at
shutdown.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from hoshi_lookup.config import LookupSettings
from hoshi_lookup.deinflect import DeinflectionRule, Deinflector
from hoshi_lookup.errors import ImportCancelled
from hoshi_lookup.lookup import LookupEngine
from hoshi_lookup.models import DictionaryInfo, DictionaryType, EntryData
from hoshi_lookup.store import DictionaryStore

logger = logging.getLogger(__name__)


class LookupContext:
    """
    Store, deinflector and lookup engine for one storage root.

    Args:
        root: Storage directory for dictionaries and the catalog file
        settings: Lookup limits; defaults apply when omitted
        rules: Deinflection rule table; the bundled table when omitted
    """

    def __init__(
        self,
        root: Union[str, Path],
        settings: Optional[LookupSettings] = None,
        rules: Optional[Iterable[DeinflectionRule]] = None,
    ):
        self.settings = settings or LookupSettings()
        self.store = DictionaryStore(root)
        self.deinflector = Deinflector(rules, max_depth=self.settings.max_deinflection_depth)
        self.engine = LookupEngine(self.store, self.deinflector, max_length=self.settings.max_lookup_length)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def open(self) -> "LookupContext":
        """Load the persisted catalog. Returns self for chaining."""
        self.store.load_dictionaries()
        return self

    def lookup(self, text: str, offset: int, max_results: Optional[int] = None) -> List[EntryData]:
        if max_results is None:
            max_results = self.settings.max_results
        return self.engine.lookup(text, offset, max_results)

    def import_dictionary(
        self,
        archive_path: Union[str, Path],
        dict_type: DictionaryType,
        cancel_event: Optional[threading.Event] = None,
    ) -> DictionaryInfo:
        return self.store.import_dictionary(archive_path, dict_type, cancel_event)

    # ------------------------------------------------------------------
    # Background import
    # ------------------------------------------------------------------

    def _get_executor(self) -> ThreadPoolExecutor:
        """Get or create the single-worker import executor."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hoshi-import")
        return self._executor

    async def import_dictionary_async(
        self,
        archive_path: Union[str, Path],
        dict_type: DictionaryType,
        timeout: Optional[float] = None,
    ) -> DictionaryInfo:
        """
        Import off the event loop.

        The import slot is claimed before the work is queued, so a second
        import fails at once instead of waiting for the first to finish.

        If the timeout expires the import is signalled to stop and awaited.
        An import that had already passed its last cancellation point still
        commits, and its DictionaryInfo is returned.

        Raises:
            ImportInProgress: If another import is running
            ImportCancelled: If the timeout expired and the import stopped
            DictionaryImportError: Any failure from the import itself
        """
        loop = asyncio.get_running_loop()
        cancel_event = threading.Event()
        self.store.reserve_import()
        try:
            future = loop.run_in_executor(
                self._get_executor(),
                self.store.run_reserved_import,
                archive_path,
                dict_type,
                cancel_event,
            )
        except BaseException:
            self.store.release_import()
            raise

        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError:
            cancel_event.set()
            try:
                info = await future
            except ImportCancelled as e:
                raise ImportCancelled(f"Import of {archive_path} timed out after {timeout}s") from e
            logger.warning(f"Import of {archive_path} finished after its {timeout}s timeout and was kept")
            return info
        except asyncio.CancelledError:
            cancel_event.set()
            raise

    def close(self) -> None:
        """Wait for any background import and release every index."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.store.close()

    def __enter__(self) -> "LookupContext":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


@contextmanager
def open_context(
    root: Union[str, Path],
    settings: Optional[LookupSettings] = None,
) -> Iterator[LookupContext]:
    """
    Context manager for a session of lookups.

    Example:
        >>> with hoshi_lookup.open_context("~/.hoshi") as ctx:
        ...     for entry in ctx.lookup("食べたとき", 0):
        ...         print(entry.expression)
    """
    context = LookupContext(Path(root).expanduser(), settings)
    context.open()
    try:
        yield context
    finally:
        context.close()
