"""
hoshi-lookup: Japanese dictionary lookup for e-book readers

Imports Yomitan term, frequency and pitch dictionaries, reverses inflection
to find dictionary forms, and returns ranked entries for the word under the
reader's cursor.

Basic Usage:
    import hoshi_lookup

    with hoshi_lookup.open_context("~/.hoshi-lookup") as ctx:
        ctx.import_dictionary("jmdict.zip", hoshi_lookup.DictionaryType.TERM)
        for entry in ctx.lookup("食べたとき", 0):
            print(f"{entry.matched} -> {entry.expression} {entry.trace_names}")
"""

from hoshi_lookup.config import DictionaryConfig, DictionaryConfigEntry, LookupSettings
from hoshi_lookup.context import LookupContext, open_context
from hoshi_lookup.deinflect import Deinflection, DeinflectionRule, Deinflector, load_rules
from hoshi_lookup.errors import (
    BankParseFailure,
    DictionaryImportError,
    DuplicateDictionary,
    ImportCancelled,
    ImportInProgress,
    InvalidArchive,
    MissingOrMalformedManifest,
    StorageWriteFailure,
    UnsupportedSchemaVersion,
)
from hoshi_lookup.lookup import LookupEngine
from hoshi_lookup.models import (
    DeinflectionTag,
    DictionaryInfo,
    DictionaryType,
    EntryData,
    FrequencyData,
    FrequencyEntry,
    FrequencyTag,
    GlossaryData,
    PitchData,
    PitchEntry,
    TermEntry,
)
from hoshi_lookup.store import Catalog, DictionaryStore

__version__ = "0.1.0"


def get_version() -> str:
    """Get the library version."""
    return __version__


__all__ = [
    # Context
    "LookupContext",
    "open_context",
    "LookupSettings",
    # Engines
    "DictionaryStore",
    "Catalog",
    "Deinflector",
    "Deinflection",
    "DeinflectionRule",
    "load_rules",
    "LookupEngine",
    # Data classes
    "DictionaryType",
    "DictionaryInfo",
    "DictionaryConfig",
    "DictionaryConfigEntry",
    "TermEntry",
    "FrequencyEntry",
    "PitchEntry",
    "EntryData",
    "GlossaryData",
    "FrequencyData",
    "FrequencyTag",
    "PitchData",
    "DeinflectionTag",
    # Exceptions
    "DictionaryImportError",
    "InvalidArchive",
    "MissingOrMalformedManifest",
    "UnsupportedSchemaVersion",
    "BankParseFailure",
    "StorageWriteFailure",
    "DuplicateDictionary",
    "ImportInProgress",
    "ImportCancelled",
    # Version
    "get_version",
    "__version__",
]
