"""
Error taxonomy for hoshi-lookup.

Every failure during dictionary import is raised as a subclass of
DictionaryImportError. The store guarantees the catalog is unchanged
whenever one of these escapes an import call.
"""


class DictionaryImportError(Exception):
    """Base class for all import failures."""
    pass


class InvalidArchive(DictionaryImportError):
    """The file is missing or is not a readable zip archive."""
    pass


class MissingOrMalformedManifest(DictionaryImportError):
    """The archive has no index.json or it cannot be decoded."""
    pass


class UnsupportedSchemaVersion(DictionaryImportError):
    """The manifest declares a format version we cannot read."""
    pass


class BankParseFailure(DictionaryImportError):
    """A data bank is malformed or the archive holds no bank of the requested type."""
    pass


class StorageWriteFailure(DictionaryImportError):
    """Parsed data or the catalog could not be written to disk."""
    pass


class DuplicateDictionary(DictionaryImportError):
    """A dictionary with the same title is already imported for this type."""
    pass


class ImportInProgress(DictionaryImportError):
    """Another import is already running."""
    pass


class ImportCancelled(DictionaryImportError):
    """The import was abandoned before it committed."""
    pass
