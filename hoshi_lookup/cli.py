"""
CLI interface for hoshi-lookup.

Usage:
    hoshi-lookup import jmdict.zip --type term
    hoshi-lookup list
    hoshi-lookup disable 0 --type frequency
    hoshi-lookup move 2 0 --type term
    hoshi-lookup lookup "食べたとき"
    hoshi-lookup lookup --json --offset 2 "今日は食べた"
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from hoshi_lookup import __version__
from hoshi_lookup.config import LookupSettings, MAX_RESULTS
from hoshi_lookup.context import LookupContext
from hoshi_lookup.errors import DictionaryImportError
from hoshi_lookup.models import DictionaryType, EntryData

DEFAULT_ROOT = Path.home() / ".hoshi-lookup"

TYPE_TITLES = {
    DictionaryType.TERM: 'Term Dictionaries',
    DictionaryType.FREQUENCY: 'Frequency Dictionaries',
    DictionaryType.PITCH: 'Pitch Dictionaries',
}


# ============================================================================
# Output Formatting
# ============================================================================

def _glossary_text(item) -> str:
    if isinstance(item, str):
        return item
    return json.dumps(item, ensure_ascii=False)


def format_default(entries: List[EntryData]) -> str:
    """
    Readable output, one block per entry.

    Format: expression【reading】 ← matched (rule → rule)
    """
    if not entries:
        return "No results"

    lines = []
    for entry in entries:
        head = entry.expression
        if entry.reading and entry.reading != entry.expression:
            head += f"【{entry.reading}】"
        if entry.matched != entry.expression:
            head += f" ← {entry.matched}"
        if entry.deinflection_trace:
            head += " (" + " → ".join(entry.trace_names) + ")"
        lines.append(head)

        for pitch in entry.pitches:
            lines.append(f"  ♪ {pitch.dictionary}: " + ", ".join(f"[{p}]" for p in pitch.pitch_positions))
        for freq in entry.frequencies:
            lines.append(f"  # {freq.dictionary}: " + ", ".join(f.display_value for f in freq.frequencies))
        for glossary in entry.glossaries:
            lines.append(f"  {glossary.dictionary}")
            for item in glossary.content:
                lines.append(f"    • {_glossary_text(item)}")
    return "\n".join(lines)


def format_json(entries: List[EntryData]) -> str:
    return json.dumps([e.to_dict() for e in entries], ensure_ascii=False, indent=2)


def format_catalog(context: LookupContext) -> str:
    lines = []
    for dict_type, title in TYPE_TITLES.items():
        lines.append(title)
        infos = context.store.dictionaries(dict_type)
        if not infos:
            lines.append("  (none)")
        for info in infos:
            state = "on " if info.is_enabled else "off"
            revision = f" rev {info.revision}" if info.revision else ""
            lines.append(f"  {info.order:>2} [{state}] {info.name}{revision}")
    return "\n".join(lines)


# ============================================================================
# Main
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hoshi-lookup",
        description="Japanese dictionary lookup with deinflection",
    )
    parser.add_argument(
        "--root", "-r",
        type=Path,
        default=DEFAULT_ROOT,
        help=f"Dictionary storage directory (default: {DEFAULT_ROOT})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"hoshi-lookup {__version__}",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    type_choices = [t.value for t in DictionaryType]

    cmd = commands.add_parser("import", help="Import a Yomitan dictionary archive")
    cmd.add_argument("archive", type=Path)
    cmd.add_argument("--type", "-t", choices=type_choices, default="term")

    commands.add_parser("list", help="List installed dictionaries")

    for name in ("enable", "disable"):
        cmd = commands.add_parser(name, help=f"{name.capitalize()} a dictionary")
        cmd.add_argument("order", type=int)
        cmd.add_argument("--type", "-t", choices=type_choices, default="term")

    cmd = commands.add_parser("move", help="Change a dictionary's priority")
    cmd.add_argument("source", type=int)
    cmd.add_argument("destination", type=int)
    cmd.add_argument("--type", "-t", choices=type_choices, default="term")

    cmd = commands.add_parser("delete", help="Delete a dictionary")
    cmd.add_argument("order", type=int)
    cmd.add_argument("--type", "-t", choices=type_choices, default="term")

    cmd = commands.add_parser("lookup", help="Look up the word at an offset")
    cmd.add_argument("text", nargs="?", help="Text to look up (stdin if omitted)")
    cmd.add_argument("--offset", "-o", type=int, default=0)
    cmd.add_argument("--max-results", "-n", type=int, default=MAX_RESULTS)
    cmd.add_argument("--json", "-j", action="store_true", help="Output as JSON")

    return parser


def run(args: argparse.Namespace) -> int:
    context = LookupContext(args.root.expanduser()).open()
    try:
        if args.command == "import":
            info = context.import_dictionary(args.archive, DictionaryType(args.type))
            print(f"Imported {info.name} ({info.type.value} #{info.order})")
        elif args.command == "list":
            print(format_catalog(context))
        elif args.command in ("enable", "disable"):
            context.store.toggle_dictionary(args.order, args.command == "enable", DictionaryType(args.type))
            print(format_catalog(context))
        elif args.command == "move":
            context.store.move_dictionary(args.source, args.destination, DictionaryType(args.type))
            print(format_catalog(context))
        elif args.command == "delete":
            info = context.store.delete_dictionary(args.order, DictionaryType(args.type))
            print(f"Deleted {info.name}")
        elif args.command == "lookup":
            text = args.text if args.text is not None else sys.stdin.read().strip()
            max_results = LookupSettings(max_results=args.max_results).max_results
            entries = context.lookup(text, args.offset, max_results)
            print(format_json(entries) if args.json else format_default(entries))
    finally:
        context.close()
    return 0


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    try:
        sys.exit(run(args))
    except (DictionaryImportError, IndexError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
