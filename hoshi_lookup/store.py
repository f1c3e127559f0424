"""
Dictionary catalog and storage.

The store owns three ordered lists of installed dictionaries (term,
frequency, pitch). A dictionary's order is its position in its list, so
every structural change renumbers the list to a contiguous 0..N-1 run.

The whole catalog is an immutable snapshot. Mutations build a new snapshot,
persist it, and only then swap the reference, so a reader sees either the
state before or after a change and never anything in between.
"""

import logging
import re
import shutil
import threading
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from hoshi_lookup.archive import ParsedDictionary, read_archive
from hoshi_lookup.config import (
    CONFIG_FILE,
    DictionaryConfig,
    DictionaryConfigEntry,
    load_config,
    save_config,
)
from hoshi_lookup.errors import (
    DuplicateDictionary,
    ImportCancelled,
    ImportInProgress,
    StorageWriteFailure,
)
from hoshi_lookup.index import (
    DictionaryIndex,
    read_manifest,
    read_styles,
    write_manifest,
    write_styles,
)
from hoshi_lookup.models import DictionaryInfo, DictionaryType

logger = logging.getLogger(__name__)

STAGING_DIR = ".staging"
TRASH_DIR = ".trash"

_UNSAFE_FILE_CHARS = re.compile(r'[\x00-\x1f/\\:*?"<>|]')


@dataclass(frozen=True)
class InstalledDictionary:
    """A catalog slot: metadata plus its index (None if it failed to load)."""
    info: DictionaryInfo
    index: Optional[DictionaryIndex] = None


@dataclass(frozen=True)
class Catalog:
    """Immutable snapshot of every installed dictionary."""
    term: Tuple[InstalledDictionary, ...] = ()
    frequency: Tuple[InstalledDictionary, ...] = ()
    pitch: Tuple[InstalledDictionary, ...] = ()
    custom_css: str = ""

    def get(self, dict_type: DictionaryType) -> Tuple[InstalledDictionary, ...]:
        return getattr(self, DictionaryType(dict_type).value)

    def enabled(self, dict_type: DictionaryType) -> List[InstalledDictionary]:
        return [d for d in self.get(dict_type) if d.info.is_enabled]

    def with_items(self, dict_type: DictionaryType, items: Iterable[InstalledDictionary]) -> "Catalog":
        """Return a new catalog with one list replaced and renumbered."""
        renumbered = tuple(
            item if item.info.order == position
            else replace(item, info=replace(item.info, order=position))
            for position, item in enumerate(items)
        )
        return replace(self, **{DictionaryType(dict_type).value: renumbered})

    def to_config(self) -> DictionaryConfig:
        config = DictionaryConfig(custom_css=self.custom_css)
        for dict_type in DictionaryType:
            config.entries(dict_type).extend(
                DictionaryConfigEntry(d.info.file_name, d.info.is_enabled, d.info.order)
                for d in self.get(dict_type)
            )
        return config


def safe_file_name(title: str) -> str:
    """Turn a dictionary title into a directory name."""
    name = _UNSAFE_FILE_CHARS.sub("_", title).strip().lstrip(".")
    return name or "dictionary"


class DictionaryStore:
    """
    Catalog of imported dictionaries rooted at a directory.

    Layout:
        <root>/dictionaries.json        persisted catalog
        <root>/<type>/<fileName>/       one directory per dictionary
        <root>/.staging/                imports in progress

    Args:
        root: Storage directory; created on first write
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.config_path = self.root / CONFIG_FILE
        self._catalog = Catalog()
        self._mutation_lock = threading.RLock()
        self._import_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def snapshot(self) -> Catalog:
        """The last committed catalog. Never waits for an import."""
        return self._catalog

    def dictionaries(self, dict_type: DictionaryType) -> List[DictionaryInfo]:
        return [d.info for d in self._catalog.get(dict_type)]

    @property
    def is_importing(self) -> bool:
        return self._import_guard.locked()

    @property
    def custom_css(self) -> str:
        return self._catalog.custom_css

    def dictionary_styles(self) -> Dict[str, str]:
        """Glossary CSS of the enabled term dictionaries that ship one, keyed by name."""
        return {
            d.info.name: d.info.styles
            for d in self._catalog.enabled(DictionaryType.TERM)
            if d.info.styles
        }

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def load_dictionaries(self) -> Catalog:
        """
        Restore the catalog from disk.

        Malformed catalog records and missing directories are skipped with a
        warning. Dictionary directories that exist on disk but are absent
        from the catalog file are appended as enabled.
        """
        with self._mutation_lock:
            config = load_config(self.config_path)
            catalog = Catalog(custom_css=config.custom_css)
            for dict_type in DictionaryType:
                items = self._restore(dict_type, config.entries(dict_type))
                catalog = catalog.with_items(dict_type, items)
            self._catalog = catalog

        logger.info(
            "Loaded dictionaries: "
            + ", ".join(f"{len(catalog.get(t))} {t.value}" for t in DictionaryType)
        )
        return catalog

    def _restore(
        self,
        dict_type: DictionaryType,
        records: List[DictionaryConfigEntry],
    ) -> List[InstalledDictionary]:
        type_dir = self.root / dict_type.value
        restored: List[InstalledDictionary] = []
        seen = set()

        for record in sorted(records, key=lambda r: r.order):
            if record.file_name in seen:
                logger.warning(f"Skipping duplicate {dict_type.value} record {record.file_name!r}")
                continue
            if safe_file_name(record.file_name) != record.file_name:
                logger.warning(f"Skipping {dict_type.value} record with unsafe name {record.file_name!r}")
                continue
            directory = type_dir / record.file_name
            if not directory.is_dir():
                logger.warning(f"Skipping {dict_type.value} dictionary {record.file_name!r}: directory is missing")
                continue
            seen.add(record.file_name)
            restored.append(self._open(directory, dict_type, record.is_enabled))

        if type_dir.is_dir():
            for directory in sorted(type_dir.iterdir()):
                if directory.is_dir() and not directory.name.startswith(".") and directory.name not in seen:
                    logger.info(f"Found {dict_type.value} dictionary {directory.name!r} not in catalog")
                    restored.append(self._open(directory, dict_type, True))

        return restored

    def _open(self, directory: Path, dict_type: DictionaryType, is_enabled: bool) -> InstalledDictionary:
        name, revision = directory.name, ""
        try:
            manifest = read_manifest(directory)
            title = manifest.get("title")
            if isinstance(title, str) and title.strip():
                name = title.strip()
            revision = str(manifest.get("revision", ""))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read manifest of {directory}: {e}")

        index = None
        try:
            index = DictionaryIndex.load(directory, dict_type)
        except (OSError, ValueError, RuntimeError) as e:
            logger.warning(f"Could not load index of {directory}, it will contribute no results: {e}")

        styles = ""
        try:
            styles = read_styles(directory)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read styles of {directory}: {e}")

        info = DictionaryInfo(
            name=name,
            path=directory,
            type=dict_type,
            is_enabled=is_enabled,
            revision=revision,
            styles=styles,
        )
        return InstalledDictionary(info=info, index=index)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_dictionary(
        self,
        archive_path: Union[str, Path],
        dict_type: DictionaryType,
        cancel_event: Optional[threading.Event] = None,
    ) -> DictionaryInfo:
        """
        Import a dictionary archive and append it to its type's list.

        Only one import may run at a time; a concurrent request fails
        immediately. On any failure the catalog and its file are untouched.

        Args:
            archive_path: Path to the Yomitan .zip archive
            dict_type: List to import into
            cancel_event: When set, the import is abandoned at the next checkpoint

        Returns:
            DictionaryInfo of the committed dictionary

        Raises:
            DictionaryImportError: One of its subclasses, see errors.py
        """
        self.reserve_import()
        return self.run_reserved_import(archive_path, dict_type, cancel_event)

    def reserve_import(self) -> None:
        """
        Claim the single import slot without waiting.

        The slot is released by run_reserved_import, which may run on
        another thread.

        Raises:
            ImportInProgress: If another import holds the slot
        """
        if not self._import_guard.acquire(blocking=False):
            raise ImportInProgress("Another dictionary import is already running")

    def release_import(self) -> None:
        self._import_guard.release()

    def run_reserved_import(
        self,
        archive_path: Union[str, Path],
        dict_type: DictionaryType,
        cancel_event: Optional[threading.Event] = None,
    ) -> DictionaryInfo:
        """Run an import whose slot was claimed by reserve_import, then free the slot."""
        try:
            return self._import(Path(archive_path), DictionaryType(dict_type), cancel_event)
        finally:
            self.release_import()

    def _import(
        self,
        archive_path: Path,
        dict_type: DictionaryType,
        cancel_event: Optional[threading.Event],
    ) -> DictionaryInfo:
        def check_cancelled():
            if cancel_event is not None and cancel_event.is_set():
                raise ImportCancelled(f"Import of {archive_path} was cancelled")

        logger.info(f"Importing {dict_type.value} dictionary from {archive_path}")
        parsed = read_archive(archive_path, dict_type, cancel_event)
        self._check_duplicate(parsed.title, dict_type)

        staging = self.root / STAGING_DIR / uuid.uuid4().hex
        try:
            try:
                staging.mkdir(parents=True)
                write_manifest(staging, parsed.manifest)
                write_styles(staging, parsed.styles)
                DictionaryIndex.build(parsed.entries).save(staging)
            except OSError as e:
                raise StorageWriteFailure(f"Could not write dictionary data: {e}") from e

            with self._mutation_lock:
                check_cancelled()
                self._check_duplicate(parsed.title, dict_type)
                info = self._commit_import(staging, parsed, dict_type)
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        logger.info(f"Imported {info.name!r} as {dict_type.value} dictionary #{info.order}")
        return info

    def _check_duplicate(self, title: str, dict_type: DictionaryType) -> None:
        if any(d.info.name == title for d in self._catalog.get(dict_type)):
            raise DuplicateDictionary(f"{title!r} is already imported as a {dict_type.value} dictionary")

    def _commit_import(
        self,
        staging: Path,
        parsed: ParsedDictionary,
        dict_type: DictionaryType,
    ) -> DictionaryInfo:
        title = parsed.title
        target = self.root / dict_type.value / safe_file_name(title)
        if target.exists():
            raise DuplicateDictionary(f"{target} already exists")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            staging.rename(target)
        except OSError as e:
            raise StorageWriteFailure(f"Could not move dictionary into place: {e}") from e

        current = self._catalog.get(dict_type)
        try:
            index = DictionaryIndex.load(target, dict_type)
            info = DictionaryInfo(
                name=title,
                path=target,
                type=dict_type,
                order=len(current),
                revision=parsed.revision,
                styles=parsed.styles,
            )
            installed = InstalledDictionary(info=info, index=index)
            self._commit(self._catalog.with_items(dict_type, current + (installed,)))
        except (OSError, ValueError, RuntimeError) as e:
            shutil.rmtree(target, ignore_errors=True)
            raise StorageWriteFailure(f"Could not commit dictionary {title!r}: {e}") from e
        return info

    # ------------------------------------------------------------------
    # Catalog management
    # ------------------------------------------------------------------

    def toggle_dictionary(self, order: int, enabled: bool, dict_type: DictionaryType) -> None:
        """Enable or disable the dictionary at order. Ordering is unchanged."""
        with self._mutation_lock:
            items = list(self._catalog.get(dict_type))
            self._check_order(order, items, dict_type)
            item = items[order]
            items[order] = replace(item, info=replace(item.info, is_enabled=enabled))
            self._commit(self._catalog.with_items(dict_type, items))

    def move_dictionary(self, source: int, destination: int, dict_type: DictionaryType) -> None:
        """Move the dictionary at source so that it ends up at destination."""
        with self._mutation_lock:
            items = list(self._catalog.get(dict_type))
            self._check_order(source, items, dict_type)
            self._check_order(destination, items, dict_type)
            items.insert(destination, items.pop(source))
            self._commit(self._catalog.with_items(dict_type, items))
        logger.info(f"Moved {dict_type.value} dictionary from {source} to {destination}")

    def delete_dictionary(self, order: int, dict_type: DictionaryType) -> DictionaryInfo:
        """Remove the dictionary at order and free its data."""
        with self._mutation_lock:
            items = list(self._catalog.get(dict_type))
            self._check_order(order, items, dict_type)
            removed = items.pop(order)

            # Park the directory first so a failed commit can put it back
            trash = self.root / TRASH_DIR / uuid.uuid4().hex
            trash.parent.mkdir(parents=True, exist_ok=True)
            parked = removed.info.path.exists()
            if parked:
                removed.info.path.rename(trash)
            try:
                self._commit(self._catalog.with_items(dict_type, items))
            except BaseException:
                if parked:
                    trash.rename(removed.info.path)
                raise

        if parked:
            shutil.rmtree(trash, ignore_errors=True)
        logger.info(f"Deleted {dict_type.value} dictionary {removed.info.name!r}")
        return removed.info

    def set_custom_css(self, css: str) -> None:
        with self._mutation_lock:
            self._commit(replace(self._catalog, custom_css=css))

    def close(self) -> None:
        """Drop every index so memory-mapped files are released."""
        with self._mutation_lock:
            self._catalog = Catalog()

    @staticmethod
    def _check_order(order: int, items: list, dict_type: DictionaryType) -> None:
        if not 0 <= order < len(items):
            raise IndexError(f"No {DictionaryType(dict_type).value} dictionary at order {order}")

    def _commit(self, catalog: Catalog) -> None:
        save_config(self.config_path, catalog.to_config())
        self._catalog = catalog
