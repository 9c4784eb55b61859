import argparse
import os
import sys
import tempfile

from l10n_cache.errors import DocumentParseError
from l10n_cache.logger import setup_exception_hook
from l10n_cache.manager import LocalizationManager
from l10n_cache.markers import (
    check_substitution_markers,
    count_substitution_markers,
    fix_broken_formatting_string,
)
from l10n_cache.merge import XliffMerger
from l10n_cache.parser import XliffParser
from l10n_cache.settings import LocalizationSettings


def _require_files(*paths) -> bool:
    for path in paths:
        if not os.path.exists(path):
            print(f"Error: File not found: {path}")
            return False
    return True


def cmd_merge(args) -> int:
    if not _require_files(args.new_file, args.old_file):
        return 1

    print(f"Loading {args.new_file} and {args.old_file}...")
    new_doc = XliffParser.read(args.new_file)
    old_doc = XliffParser.read(args.old_file)

    merger = XliffMerger(verbose=not args.quiet)
    merged = merger.merge(new_doc, old_doc)

    output_path = args.output or args.new_file.replace(".xlf", "_merged.xlf")
    if output_path == args.new_file:
        output_path = args.new_file + "_merged.xlf"
    print(f"Saving to {output_path}...")
    XliffParser.write(merged, output_path)

    counts = merger.report.counts()
    print("Done. " + ", ".join(f"{name}: {count}" for name, count in counts.items()))
    return 0


def cmd_resolve(args) -> int:
    if not os.path.isdir(args.installed):
        print(f"Error: File not found: {args.installed}")
        return 1

    settings = LocalizationSettings(use_language_code_folders=args.folders)
    generated = args.generated or os.path.join(tempfile.gettempdir(), "l10n-cache", args.app_id)
    with LocalizationManager(args.app_id, None, args.installed, generated,
                             custom_dir=args.custom, settings=settings) as manager:
        text = manager.resolve(args.lang, args.string_id)
    if text is None:
        print(f"No text found for {args.string_id}")
        return 2
    print(text)
    return 0


def cmd_check(args) -> int:
    if not _require_files(args.default_file, args.translated_file):
        return 1

    default_doc = XliffParser.read(args.default_file)
    translated_doc = XliffParser.read(args.translated_file)
    lang = translated_doc.language
    print(f"Checking {len(translated_doc)} units of {lang} against {args.default_file}...")

    broken = 0
    repaired = 0
    for unit in translated_doc.sorted_units():
        value = translated_doc.translation_for(unit)
        default_unit = default_doc.get(unit.id)
        if not value or default_unit is None:
            continue
        markers_count = count_substitution_markers(default_unit.source)
        if check_substitution_markers(markers_count, value, unit.id):
            continue
        broken += 1
        fixed = fix_broken_formatting_string(value)
        if fixed != value and check_substitution_markers(markers_count, fixed, unit.id):
            repaired += 1
            print(f"[Fixable] {unit.id}: {value!r} -> {fixed!r}")
        else:
            print(f"[Error] {unit.id}: {value!r}")

    print(f"Done. Invalid: {broken}, Repairable: {repaired}")
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="XLIFF localized string cache")
    subparsers = parser.add_subparsers(dest="command", required=True)

    merge_parser = subparsers.add_parser("merge", help="Merge a new harvest into an old baseline file")
    merge_parser.add_argument("new_file", help="Freshly generated default-language .xlf file")
    merge_parser.add_argument("old_file", help="Previously shipped .xlf file")
    merge_parser.add_argument("--output", help="Path to output .xlf file")
    merge_parser.add_argument("--quiet", action="store_true", help="Do not list the changed ids")
    merge_parser.set_defaults(func=cmd_merge)

    resolve_parser = subparsers.add_parser("resolve", help="Print the localized text for a string id")
    resolve_parser.add_argument("--app-id", required=True, help="Application id used in the file names")
    resolve_parser.add_argument("--installed", required=True, help="Folder of installed .xlf files")
    resolve_parser.add_argument("--generated", help="Folder for the generated default-language file")
    resolve_parser.add_argument("--custom", help="Folder of user-customized .xlf files")
    resolve_parser.add_argument("--folders", action="store_true", help="Files are laid out as {lang}/{appId}.xlf")
    resolve_parser.add_argument("lang", help="Requested language tag")
    resolve_parser.add_argument("string_id", help="String id to resolve")
    resolve_parser.set_defaults(func=cmd_resolve)

    check_parser = subparsers.add_parser("check", help="Report translations with broken substitution markers")
    check_parser.add_argument("default_file", help="Default-language .xlf file")
    check_parser.add_argument("translated_file", help="Translated .xlf file")
    check_parser.set_defaults(func=cmd_check)

    return parser


def main(argv=None) -> int:
    setup_exception_hook()
    args = build_arg_parser().parse_args(argv)
    try:
        return args.func(args)
    except DocumentParseError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
