from typing import Dict, Iterable, List, Optional, Tuple

from .document import XliffDocument
from .errors import DocumentNotFoundError, DocumentParseError, DocumentPermissionError, DocumentSaveError
from .language_map import LanguageAliasMap
from .logger import get_logger
from .markers import (
    check_substitution_markers,
    count_substitution_markers,
    fix_broken_formatting_string,
)
from .parser import XliffParser
from .xliff_obj import (
    DEFAULT_LANG,
    SHORTCUT_SUFFIX,
    TOOLTIP_SUFFIX,
    ID_NOTE_PREFIX,
    TranslationUnit,
    Variant,
    has_derived_suffix,
)

logger = get_logger(__name__)

REAL_NEWLINE = "\n"


class LocalizedStringCache:
    """
    Language tag -> XliffDocument table with lazy loading.

    The default-language document is always loaded. Every other document is only
    known by its file path until somebody asks for that language.
    """

    def __init__(self, default_document: XliffDocument, default_lang: str = DEFAULT_LANG,
                 owner=None, alias_map: Optional[LanguageAliasMap] = None,
                 return_only_approved: bool = False):
        self.default_lang = default_lang
        self.default_document = default_document
        self.owner = owner  # supplies file paths, app version and name when saving
        self.alias_map = alias_map if alias_map is not None else LanguageAliasMap()
        self.return_only_approved = return_only_approved

        self._documents: Dict[str, XliffDocument] = {default_lang: default_document}
        self._unloaded: Dict[str, str] = {}
        # file-derived tag -> tag the document was stored under
        self._loaded_from: Dict[str, str] = {}
        self.corrupt_files: List[str] = []
        self.fallback_languages: List[str] = [default_lang]

        self.alias_map.set_identity(default_lang)
        self._structure_dirty = False

    # --- registration / lazy loading ---

    def register_file(self, lang: str, path: str):
        """Makes a language file known without parsing it."""
        if lang == self.default_lang:
            return
        # "es-ES" can provide translations for "es" if there is no "es" of its own
        pieces = lang.split("-")
        if len(pieces) > 1:
            self.alias_map.add_inferred(pieces[0], lang)
        # Identity mapping always wins
        self.alias_map.set_identity(lang)
        self._unloaded[lang] = path

    def register_files(self, files: Iterable[Tuple[str, str]]):
        for lang, path in files:
            self.register_file(lang, path)

    def add_document(self, lang: str, document: XliffDocument):
        self._documents[lang] = document
        self.alias_map.set_identity(lang)

    def try_get(self, lang: Optional[str]) -> Optional[XliffDocument]:
        if not lang:
            return None
        doc = self._documents.get(lang)
        if doc is not None:
            return doc
        stored_as = self._loaded_from.get(lang)
        if stored_as is not None:
            return self._documents.get(stored_as)
        return self._load(lang)

    get_document = try_get

    @property
    def loaded_languages(self) -> List[str]:
        return list(self._documents.keys())

    @property
    def available_languages(self) -> List[str]:
        # The real target-language tags are only known after parsing
        for lang in list(self._unloaded.keys()):
            self.try_get(lang)
        return list(self._documents.keys())

    def _load(self, lang: str) -> Optional[XliffDocument]:
        file_key = lang
        path = self._unloaded.get(lang)
        if path is None:
            # A file in a plain "es" folder may be asked for as "es-ES"
            pieces = lang.split("-")
            if len(pieces) <= 1:
                return None
            path = self._unloaded.get(pieces[0])
            if path is None:
                return None
            file_key = pieces[0]

        del self._unloaded[file_key]
        try:
            doc = XliffParser.read(path)
        except DocumentParseError as e:
            logger.warning(f"Ignoring corrupt localization file {path}: {e.reason}")
            self.corrupt_files.append(path)
            return None
        except (DocumentNotFoundError, DocumentPermissionError) as e:
            logger.warning(f"Cannot read localization file: {e}")
            return None

        # Often more specific than the tag deduced from the file path
        target_lang = doc.target_lang or file_key
        doc.target_lang = target_lang
        self._update_alias_map(file_key, target_lang)

        self._loaded_from[file_key] = target_lang
        if lang != target_lang:
            self._loaded_from.setdefault(lang, target_lang)
            self.alias_map.add_inferred(lang, target_lang)

        existing = self._documents.get(target_lang)
        if existing is not None:
            logger.warning(f"{path} declares {target_lang}, which is already loaded; keeping the first file")
            return existing

        self._documents[target_lang] = doc
        self._repair_orphans(doc)
        logger.debug(f"Loaded {len(doc)} units for {target_lang} from {path}")
        return doc

    def _update_alias_map(self, file_key: str, target_lang: str):
        pieces = target_lang.split("-")
        if len(pieces) > 1:
            general = pieces[0]
            if general in self.alias_map:
                # A file in an "es" folder declaring es-ES left a spurious es -> es behind.
                # If "es" points elsewhere (say a real es folder), leave it alone.
                self.alias_map.correct(general, file_key, target_lang)
            else:
                self.alias_map.add_inferred(general, target_lang)
        self.alias_map.set_identity(target_lang)

    def _repair_orphans(self, doc: XliffDocument):
        """Re-keys renamed units and drops units whose id no longer exists."""
        if doc.target_lang == self.default_lang:
            return
        for unit in doc.units:
            if unit.id in self.default_document or has_derived_suffix(unit.id):
                continue
            moved = self.default_document.find_orphan_match(unit, claimed_ids=doc.ids())
            if moved is not None:
                logger.info(f"Re-keyed {unit.id} -> {moved.id} in {doc.target_lang}")
                doc.rekey(unit, moved.id)
                self._structure_dirty = True
            elif not unit.dynamic:
                # dynamic strings are by definition not found by a static scan
                doc.remove(unit)
                self._structure_dirty = True

    # --- dirty tracking ---

    @property
    def is_dirty(self) -> bool:
        if self._structure_dirty:
            return True
        return any(doc.is_dirty for doc in self._documents.values())

    # --- updating ---

    def add_or_update(self, unit_id: str, default_text: Optional[str], tooltip: Optional[str] = None,
                      shortcut: Optional[str] = None, comment: Optional[str] = None,
                      dynamic: bool = False, group: Optional[str] = None) -> bool:
        """
        Records default-language text (plus tooltip and shortcut units) for an id.
        Returns True if the default document changed.
        """
        if not unit_id:
            return False
        changed = False
        for suffix, text in (("", default_text), (TOOLTIP_SUFFIX, tooltip), (SHORTCUT_SUFFIX, shortcut)):
            if not text:
                continue
            if self._update_unit(unit_id + suffix, text, comment, dynamic, group):
                changed = True
        return changed

    def _update_unit(self, unit_id: str, text: str, comment: Optional[str], dynamic: bool,
                     group: Optional[str]) -> bool:
        doc = self.default_document
        unit = doc.get(unit_id)
        if unit is None:
            unit = TranslationUnit(id=unit_id, source=text, source_lang=self.default_lang,
                                   dynamic=dynamic, group=group)
            unit.add_note(ID_NOTE_PREFIX + unit_id, self.default_lang)
            if comment:
                unit.add_note(comment, self.default_lang)
            doc.add_or_replace(unit)
            return True

        changed = False
        if unit.source != text:
            unit.source = text
            changed = True
        if comment and not unit.has_note(comment):
            unit.add_note(comment, self.default_lang)
            changed = True
        if dynamic and not unit.dynamic:
            unit.dynamic = True
            changed = True
        if group is not None and unit.group != group:
            unit.group = group
            changed = True
        if changed:
            doc.add_or_replace(unit)
        return changed

    def set_translation(self, lang: str, unit_id: str, value: str, approved: bool = False):
        """Stores a translated value, creating the language document if needed."""
        lang = self.alias_map.resolve(lang)
        doc = self.try_get(lang)
        if doc is None:
            doc = XliffDocument(source_lang=self.default_lang, target_lang=lang,
                                hard_linebreak_replacement=self.default_document.hard_linebreak_replacement,
                                ampersand_replacement=self.default_document.ampersand_replacement)
            self.add_document(lang, doc)
        unit = doc.get(unit_id)
        if unit is None:
            default_unit = self.default_document.get(unit_id)
            unit = TranslationUnit(id=unit_id, source_lang=self.default_lang,
                                   source=default_unit.source if default_unit else "",
                                   dynamic=default_unit.dynamic if default_unit else False)
        unit.add_or_replace_variant(Variant(lang=lang, value=value, approved=approved))
        doc.add_or_replace(unit)

    # --- resolution ---

    def _format_for_display(self, value: str) -> str:
        newline = self.default_document.hard_linebreak_replacement
        if newline:
            value = value.replace(newline, REAL_NEWLINE)
        amp = self.default_document.ampersand_replacement
        if amp:
            value = value.replace(amp, "&")
        return value

    def get_string(self, lang: Optional[str], unit_id: Optional[str], format_for_display: bool = False) -> Optional[str]:
        """
        Value for exactly this language, or None. Values whose substitution markers
        do not fit the default-language source are repaired if possible, else rejected.
        """
        if not lang or not unit_id:
            return None
        doc = self.try_get(lang)
        if doc is None:
            return None
        unit = doc.get(unit_id)
        if unit is None:
            return None
        variant = doc.translation_variant(unit)
        if variant is None or not variant.value:
            return None
        if self.return_only_approved and lang != self.default_lang and not variant.approved:
            return None

        value = variant.value
        if format_for_display:
            value = self._format_for_display(value)

        # The source is definitionally correct
        if lang == self.default_lang:
            return value

        default_unit = self.default_document.get(unit_id)
        source = default_unit.source if default_unit is not None else unit.source
        if not source or not source.strip():
            return value

        markers_count = count_substitution_markers(source)
        if check_substitution_markers(markers_count, value, unit_id):
            return value

        fixed = fix_broken_formatting_string(value)
        if fixed == value or not check_substitution_markers(markers_count, fixed, unit_id, quiet=False):
            logger.debug(f"Rejected {lang} value of {unit_id}: invalid substitution markers")
            return None

        logger.info(f"Fixed invalid substitution markers in {unit_id} for {lang}")
        return fixed

    def resolve(self, lang: Optional[str], unit_id: str, format_for_display: bool = True) -> Optional[str]:
        """
        Best available text for the id: the requested language, then the fallback
        chain, then the default language. Each document is consulted at most once.
        """
        tried = []
        for candidate in self._candidate_languages(lang):
            real_lang = self.alias_map.resolve(candidate)
            if real_lang in tried:
                continue
            tried.append(real_lang)
            value = self.get_string(real_lang, unit_id, format_for_display)
            if value is not None:
                return value
        return None

    def _candidate_languages(self, lang: Optional[str]):
        if lang:
            # A regional tag with no entry of its own borrows its base language's entry
            yield self.alias_map.derive(lang) or lang
        for fallback in self.fallback_languages:
            yield fallback
        yield self.default_lang

    def resolve_tooltip(self, lang: Optional[str], unit_id: str) -> Optional[str]:
        return self.resolve(lang, unit_id + TOOLTIP_SUFFIX)

    def resolve_shortcut(self, lang: Optional[str], unit_id: str) -> Optional[str]:
        return self.resolve(lang, unit_id + SHORTCUT_SUFFIX, format_for_display=False)

    def does_translation_exist(self, lang: str, unit_id: str) -> bool:
        return any(self.get_string(lang, unit_id + suffix)
                   for suffix in ("", TOOLTIP_SUFFIX, SHORTCUT_SUFFIX))

    # --- metadata from the default document ---

    def get_comment(self, unit_id: str) -> Optional[str]:
        unit = self.default_document.get(unit_id)
        return unit.comment if unit is not None else None

    def get_group(self, unit_id: str) -> Optional[str]:
        unit = self.default_document.get(unit_id)
        return unit.group if unit is not None else None

    def get_priority(self, unit_id: str) -> Optional[str]:
        unit = self.default_document.get(unit_id)
        return unit.priority if unit is not None else None

    def get_category(self, unit_id: str) -> Optional[str]:
        unit = self.default_document.get(unit_id)
        return unit.category if unit is not None else None

    def string_count(self, lang: str) -> int:
        doc = self.try_get(lang)
        return doc.string_count if doc is not None else 0

    def number_translated(self, lang: str) -> int:
        doc = self.try_get(lang)
        return doc.number_translated if doc is not None else 0

    def number_approved(self, lang: str) -> int:
        doc = self.try_get(lang)
        return doc.number_approved if doc is not None else 0

    # --- persistence ---

    def save_if_dirty(self, force_langs: Optional[Iterable[str]] = None):
        """
        Writes every loaded, dirty document. The default language is always written;
        any other language only if a customized file already exists for it or it is
        listed in force_langs. All files are attempted; failures are raised together.
        """
        if not self.is_dirty:
            return
        force = set(force_langs or ())
        considered = []
        saved = []
        failures = []
        for lang, doc in list(self._documents.items()):
            if not doc.is_dirty:
                continue
            considered.append(doc)
            try:
                if self._save_document(lang, doc, lang in force):
                    saved.append(doc)
            except OSError as e:
                path = self.owner.get_path_for_language(lang, True) if self.owner is not None else lang
                logger.error(f"Failed to save {path}: {e}")
                failures.append((path, e))

        if failures:
            # Unsaved and skipped documents keep their changes for a later attempt
            for doc in saved:
                doc.is_dirty = False
            raise DocumentSaveError(failures)

        for doc in considered:
            doc.is_dirty = False
        self._structure_dirty = False

    def _save_document(self, lang: str, source_doc: XliffDocument, force_creation: bool) -> bool:
        if self.owner is None:
            raise DocumentPermissionError(lang, "no storage location configured")
        if (lang != self.default_lang and not force_creation
                and not self.owner.does_customized_translation_exist(lang)):
            return False
        output = self.build_output_document(lang, source_doc)
        XliffParser.write(output, self.owner.get_path_for_language(lang, True))
        return True

    def build_output_document(self, lang: str, source_doc: XliffDocument) -> XliffDocument:
        """A fresh document over the default unit list carrying this language's values."""
        default = self.default_document
        output = XliffDocument.create_empty(
            source_lang=self.default_lang,
            hard_linebreak_replacement=default.hard_linebreak_replacement,
            ampersand_replacement=default.ampersand_replacement,
        )
        if lang != self.default_lang:
            output.target_lang = lang
        if self.owner is not None:
            output.product_version = self.owner.app_version or output.product_version
            output.original = self.owner.original_file_name
        else:
            output.product_version = default.product_version
            output.original = default.original

        for unit in default.units:
            target_unit = source_doc.get(unit.id)
            new_unit = TranslationUnit(id=unit.id, source=unit.source, source_lang=self.default_lang,
                                       dynamic=unit.dynamic, group=unit.group,
                                       priority=unit.priority, category=unit.category,
                                       notes=unit.copy_notes())
            if lang != self.default_lang and target_unit is not None:
                variant = source_doc.translation_variant(target_unit)
                if variant is not None:
                    new_unit.add_or_replace_variant(Variant(lang=lang, value=variant.value,
                                                            approved=variant.approved))
            output.add_or_replace(new_unit)
        output.sort_units()
        return output
