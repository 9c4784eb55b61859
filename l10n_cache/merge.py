import copy
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .document import XliffDocument
from .logger import get_logger
from .xliff_obj import TranslationUnit

logger = get_logger(__name__)

OLD_NOTE_PREFIX = "[OLD NOTE] "
OLD_NOTE_MARKERS = ("[OLD NOTE]", "OLD TEXT")
NOTE_LANG = "en"


@dataclass
class MergeReport:
    new: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    wrong_dynamic: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    missing_dynamic: List[str] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "new": len(self.new),
            "changed": len(self.changed),
            "wrong_dynamic": len(self.wrong_dynamic),
            "missing": len(self.missing),
            "missing_dynamic": len(self.missing_dynamic),
        }

    def category_of(self, unit_id: str) -> Optional[str]:
        for name in ("new", "changed", "wrong_dynamic", "missing", "missing_dynamic"):
            if unit_id in getattr(self, name):
                return name
        return None


class XliffMerger:
    """
    Merges a freshly harvested default-language document with the previously
    shipped one. Nothing from the old document is dropped; everything that moved,
    changed or disappeared gets a note. Inputs are left untouched.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.report = MergeReport()

    def merge(self, new_doc: XliffDocument, old_doc: Optional[XliffDocument]) -> XliffDocument:
        self.report = MergeReport()
        version = new_doc.product_version
        output = XliffDocument(
            source_lang=new_doc.source_lang,
            target_lang=new_doc.target_lang,
            product_version=new_doc.product_version,
            original=new_doc.original,
            datatype=new_doc.datatype,
            hard_linebreak_replacement=new_doc.hard_linebreak_replacement,
            ampersand_replacement=new_doc.ampersand_replacement,
        )

        new_dynamic_count = 0
        for new_unit in new_doc.units:
            unit = copy.deepcopy(new_unit)
            output.add_or_replace(unit)
            if unit.dynamic:
                new_dynamic_count += 1
            if old_doc is None:
                continue
            old_unit = old_doc.get(unit.id)
            if old_unit is None:
                self.report.new.append(unit.id)
                continue
            self._merge_existing(unit, old_unit, version)

        if old_doc is not None:
            for old_unit in old_doc.units:
                if old_unit.id in new_doc:
                    continue
                unit = copy.deepcopy(old_unit)
                output.add_or_replace(unit)
                if unit.dynamic:
                    self.report.missing_dynamic.append(unit.id)
                    # no dynamic strings at all means nobody tried to collect them
                    if new_dynamic_count > 0:
                        unit.add_note(f"Not found when running compiled program (version {version})", NOTE_LANG)
                else:
                    self.report.missing.append(unit.id)
                    unit.add_note(f"Not found in static scan of compiled code (version {version})", NOTE_LANG)

        output.sort_units()
        if self.verbose:
            self._log_report(new_doc.original)
        return output

    def _merge_existing(self, unit: TranslationUnit, old_unit: TranslationUnit, version: str):
        for note in old_unit.notes:
            if unit.has_note(note.text):
                continue
            if note.text.startswith(OLD_NOTE_MARKERS):
                unit.add_note(note.text, note.lang)
            else:
                unit.add_note(OLD_NOTE_PREFIX + note.text, note.lang)

        # translations only the old file knows about
        for lang, variant in old_unit.variants.items():
            if lang not in unit.variants:
                unit.variants[lang] = copy.deepcopy(variant)

        changed = unit.source != old_unit.source
        if changed:
            self.report.changed.append(unit.id)
            unit.add_note(f"OLD TEXT (before {version}): {old_unit.source}", NOTE_LANG)
        if old_unit.dynamic and not unit.dynamic:
            if not changed:
                self.report.wrong_dynamic.append(unit.id)
            unit.add_note(f"Not dynamic: found in static scan of compiled code (version {version})", NOTE_LANG)

    def _log_report(self, original: Optional[str]):
        name = original or "default"
        messages = [
            (self.report.new, "Added {0} new strings to the {1} xliff file"),
            (self.report.changed, "{0} strings were updated in the {1} xliff file."),
            (self.report.wrong_dynamic, "{0} strings were marked dynamic incorrectly in the old {1} xliff file."),
            (self.report.missing_dynamic, "{0} dynamic strings were added back from the old {1} xliff file"),
            (self.report.missing,
             "{0} possibly obsolete (maybe dynamic?) strings were added back from the old {1} xliff file"),
        ]
        for ids, template in messages:
            if not ids:
                continue
            logger.info(template.format(len(ids), name))
            for unit_id in sorted(ids):
                logger.info(f"    {unit_id}")


def merge_documents(new_doc: XliffDocument, old_doc: Optional[XliffDocument], verbose: bool = False) -> XliffDocument:
    return XliffMerger(verbose=verbose).merge(new_doc, old_doc)
