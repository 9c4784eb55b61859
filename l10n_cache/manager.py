"""
LocalizationManager: the context object an application creates once per set of
localized strings (one app id). It owns the string cache, the alias map, the
fallback chain and the registered host objects, and knows where the XLIFF files
live on disk.
"""
import glob
import os
import re
import shutil
import tempfile
from typing import Callable, Iterable, List, Optional

from .components import ComponentRegistry
from .document import XliffDocument
from .errors import DocumentNotFoundError, DocumentParseError, DocumentSaveError, L10nError
from .language_map import LanguageAliasMap, compute_fallback_chain
from .logger import get_logger
from .merge import XliffMerger
from .parser import XliffParser
from .settings import LocalizationSettings
from .string_cache import LocalizedStringCache
from .xliff_obj import HarvestRecord, strip_localization_prefix

logger = get_logger(__name__)

DUMMY_ENTRY_ID = "_dummyEntryToGetValidFile"
DUMMY_ENTRY_TEXT = ("No strings were collected. This entry prevents an invalid, zero-length file. "
                    "Delete this file to try regenerating it.")

# Folder names accepted as language tags in the {lang}/{appId}.xlf layout
LANGUAGE_FOLDER_PATTERN = re.compile(r"[a-z]{2,3}(-[A-Za-z0-9]{2,8})*")

Harvester = Callable[[], Optional[Iterable[HarvestRecord]]]


def version_tuple(version: Optional[str]):
    """'1.10.0' -> (1, 10); non-numeric pieces count as 0."""
    parts = []
    for piece in (version or "").split("."):
        match = re.match(r"\d+", piece.strip())
        parts.append(int(match.group()) if match else 0)
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


class LocalizationManager:
    def __init__(self, app_id: str, app_version: Optional[str], installed_dir: str, generated_dir: str,
                 custom_dir: Optional[str] = None, app_name: Optional[str] = None,
                 harvester: Optional[Harvester] = None,
                 settings: Optional[LocalizationSettings] = None,
                 original_extension: str = ".dll"):
        if not app_id or not app_id.strip():
            raise ValueError("app_id must not be empty")
        if not os.path.isdir(installed_dir):
            raise DocumentNotFoundError(installed_dir)

        self.app_id = app_id
        self.app_version = app_version
        self.name = app_name or app_id
        self.settings = settings or LocalizationSettings()
        self.default_lang = self.settings.default_lang
        self.harvester = harvester
        self.original_file_name = app_id + (original_extension or ".dll")

        self._installed_dir = installed_dir
        self._generated_dir = generated_dir
        self._custom_dir = custom_dir or None

        self.default_string_file_path = self.get_path_for_language(self.default_lang, False)
        self.default_installed_string_file_path = os.path.join(
            installed_dir, self.get_file_name_for_language(self.default_lang))

        self.can_customize_localizations = self._check_custom_dir_writable()

        self._create_or_update_default_file()

        self.alias_map = LanguageAliasMap()
        self._cache: Optional[LocalizedStringCache] = LocalizedStringCache(
            self._load_default_document(),
            default_lang=self.default_lang,
            owner=self,
            alias_map=self.alias_map,
            return_only_approved=self.settings.return_only_approved,
        )
        for path in self.filenames_to_add_to_cache():
            self._cache.register_file(self.get_lang_id_from_file_name(path), path)

        self.components = ComponentRegistry(self)
        self._ui_language = self.default_lang
        self._cache.fallback_languages = self._with_configured_fallbacks([self.default_lang])

    # --- lifecycle ---

    @property
    def cache(self) -> LocalizedStringCache:
        if self._cache is None:
            raise L10nError(f"Localization manager for {self.app_id} has been closed")
        return self._cache

    @property
    def is_closed(self) -> bool:
        return self._cache is None

    def close(self):
        if self._cache is None:
            return
        self.components.clear()
        self._cache = None
        logger.debug(f"Closed localization manager for {self.app_id}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # --- file naming ---

    @property
    def scanning_for_current_strings(self) -> bool:
        """Collecting strings to localize rather than displaying localized ones."""
        return self.settings.ignore_existing_default_files

    def get_file_name_for_language(self, lang: str) -> str:
        ext = self.settings.file_extension
        if self.settings.use_language_code_folders:
            return os.path.join(lang, self.app_id + ext)
        return f"{self.app_id}.{lang}{ext}"

    def get_lang_id_from_file_name(self, path: str) -> Optional[str]:
        if self.settings.use_language_code_folders:
            folder = os.path.basename(os.path.dirname(path))
            return folder if LANGUAGE_FOLDER_PATTERN.fullmatch(folder) else None
        name = os.path.basename(path)
        ext = self.settings.file_extension
        if ext and name.endswith(ext):
            name = name[: -len(ext)]
        i = name.rfind(".")
        return None if i < 0 else name[i + 1:]

    def get_path_for_language(self, lang: str, custom_even_if_missing: bool) -> str:
        filename = self.get_file_name_for_language(lang)
        if lang == self.default_lang:
            return os.path.join(self._generated_dir, filename)
        if self._custom_dir is not None:
            custom_path = os.path.join(self._custom_dir, filename)
            if custom_even_if_missing or os.path.exists(custom_path):
                return custom_path
        return os.path.join(self._installed_dir, filename)

    def does_customized_translation_exist(self, lang: str) -> bool:
        if self._custom_dir is None:
            return False
        return os.path.exists(os.path.join(self._custom_dir, self.get_file_name_for_language(lang)))

    def filenames_to_add_to_cache(self) -> List[str]:
        """
        One file per language, the customized copy before the installed one.
        Never the default language, which is handled separately.
        """
        files = []
        customized = set()
        if self._custom_dir is not None and os.path.isdir(self._custom_dir):
            for path in self._language_files_in(self._custom_dir):
                customized.add(self.get_lang_id_from_file_name(path))
                files.append(path)
        for path in self._language_files_in(self._installed_dir):
            if self.get_lang_id_from_file_name(path) not in customized:
                files.append(path)
        return files

    def _language_files_in(self, folder: str) -> List[str]:
        ext = self.settings.file_extension
        if self.settings.use_language_code_folders:
            candidates = sorted(glob.glob(os.path.join(folder, "*", self.app_id + ext)))
        else:
            candidates = sorted(glob.glob(os.path.join(folder, f"{glob.escape(self.app_id)}.*{ext}")))
        result = []
        for path in candidates:
            lang = self.get_lang_id_from_file_name(path)
            if not lang or lang == self.default_lang:
                continue
            result.append(path)
        return result

    # --- default document lifecycle ---

    def _default_file_has_contents(self) -> bool:
        path = self.default_string_file_path
        if not os.path.isfile(path):
            return False
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return bool(f.read().strip())

    def _create_or_update_default_file(self):
        path = self.default_string_file_path
        os.makedirs(os.path.dirname(path), exist_ok=True)

        if self.scanning_for_current_strings and self._default_file_has_contents():
            os.remove(path)

        installed = self.default_installed_string_file_path
        if (not self.scanning_for_current_strings and not self._default_file_has_contents()
                and os.path.exists(installed)):
            shutil.copyfile(installed, path)

        if self._default_file_has_contents():
            try:
                version = XliffParser.read_product_version(path)
            except DocumentParseError as e:
                logger.warning(f"Deleted corrupted {path}: {e.reason}")
                os.remove(path)
            else:
                if version and version_tuple(version) >= version_tuple(self.app_version or "0.0.1"):
                    return
                if self.harvester is None:
                    logger.info(f"{path} is older than {self.app_version} but no harvester is configured")
                    return

        self._regenerate_default_file()

    def _regenerate_default_file(self):
        records = self._harvest()
        if records is None:
            return
        doc = self._create_empty_document()
        cache = LocalizedStringCache(doc, default_lang=self.default_lang, owner=self)
        if records:
            for record in records:
                cache.add_or_update(record.id, record.default_text, record.tooltip,
                                    record.shortcut_keys, record.comment, record.is_dynamic)
        else:
            cache.add_or_update(DUMMY_ENTRY_ID, DUMMY_ENTRY_TEXT)
        cache.save_if_dirty()
        logger.info(f"Generated {self.default_string_file_path} with {len(doc)} strings")

    def _harvest(self) -> Optional[List[HarvestRecord]]:
        if self.harvester is None:
            return None
        logger.info(f"Starting to extract localization strings for {self.name}")
        try:
            records = self.harvester()
            return list(records) if records is not None else None
        except Exception as e:
            # harvesting is external code; a failed harvest leaves the default file alone
            logger.error(f"Extracting localization strings for {self.name} failed: {e}")
            return None

    def _create_empty_document(self) -> XliffDocument:
        doc = XliffDocument.create_empty(
            source_lang=self.default_lang,
            product_version=self.app_version or "0.0.0",
            hard_linebreak_replacement=self.settings.literal_newline,
            ampersand_replacement=self.settings.ampersand_replacement,
        )
        doc.original = self.original_file_name
        return doc

    def _load_default_document(self) -> XliffDocument:
        doc = None
        path = self.default_string_file_path
        if self._default_file_has_contents():
            try:
                doc = XliffParser.read(path)
            except DocumentParseError as e:
                logger.warning(f"Deleted corrupted {path}: {e.reason}")
                os.remove(path)
        if doc is None:
            doc = self._create_empty_document()

        # New dynamic strings of the installed file count as valid too
        installed = self.default_installed_string_file_path
        if not self.scanning_for_current_strings and os.path.exists(installed):
            try:
                installed_doc = XliffParser.read(installed)
            except DocumentParseError as e:
                logger.warning(f"Ignoring corrupt installed file {installed}: {e.reason}")
            else:
                for unit in installed_doc.units:
                    doc.add_unit_or_variant_from_existing(unit, self.default_lang)
        doc.is_dirty = False
        return doc

    # --- customization ---

    def _check_custom_dir_writable(self) -> bool:
        if self._custom_dir is None:
            return False
        folder = os.path.abspath(self._custom_dir)
        while not os.path.exists(folder):
            parent = os.path.dirname(folder)
            if parent == folder:
                return False
            folder = parent
        return os.access(folder, os.W_OK)

    def prepare_to_customize_localizations(self):
        if self._custom_dir is None:
            raise L10nError(f"Localization manager for {self.app_id} has no folder specified for customizing localizations")
        if not self.can_customize_localizations:
            raise L10nError(f"User does not have sufficient privilege to customize localizations for {self.app_id}")
        try:
            os.makedirs(self._custom_dir, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create {self._custom_dir}: {e}")
            self.can_customize_localizations = False

    # --- strings ---

    def resolve(self, lang: Optional[str], unit_id: str, format_for_display: bool = True) -> Optional[str]:
        return self.cache.resolve(lang, unit_id, format_for_display)

    def resolve_tooltip(self, lang: Optional[str], unit_id: str) -> Optional[str]:
        return self.cache.resolve_tooltip(lang, unit_id)

    def resolve_shortcut(self, lang: Optional[str], unit_id: str) -> Optional[str]:
        return self.cache.resolve_shortcut(lang, unit_id)

    def add_or_update(self, unit_id: str, default_text: Optional[str], tooltip: Optional[str] = None,
                      shortcut: Optional[str] = None, comment: Optional[str] = None,
                      dynamic: bool = False) -> bool:
        return self.cache.add_or_update(unit_id, strip_localization_prefix(default_text),
                                        tooltip, shortcut, comment, dynamic)

    def get_localized_string(self, unit_id: str, default_text: Optional[str] = None) -> Optional[str]:
        text = None
        if self._ui_language != self.default_lang:
            text = self.cache.resolve(self._ui_language, unit_id)
        if text is None:
            text = strip_localization_prefix(default_text)
        if text is None:
            text = self.cache.resolve(self.default_lang, unit_id)
        return text

    def get_dynamic_string(self, unit_id: str, default_text: str, comment: Optional[str] = None) -> Optional[str]:
        if self.settings.collect_dynamic_strings:
            self.add_or_update(unit_id, default_text, comment=comment, dynamic=True)
        return self.get_localized_string(unit_id, default_text)

    # --- UI language ---

    @property
    def ui_language(self) -> str:
        return self._ui_language

    def set_ui_language(self, lang: str):
        ui_lang, chain = compute_fallback_chain(lang, self.available_languages(), self.default_lang)
        self._ui_language = ui_lang
        self.cache.fallback_languages = self._with_configured_fallbacks(chain)
        logger.info(f"UI language {ui_lang}, falling back to {', '.join(self.cache.fallback_languages)}")
        self.components.reapply_all()

    def _with_configured_fallbacks(self, chain: List[str]) -> List[str]:
        result = [lang for lang in chain if lang != self.default_lang]
        for lang in self.settings.fallback_languages:
            if lang not in result and lang != self.default_lang:
                result.append(lang)
        result.append(self.default_lang)
        return result

    def available_languages(self) -> List[str]:
        return self.cache.available_languages

    def is_language_available(self, lang: str) -> bool:
        if self.cache.try_get(self.alias_map.resolve(lang)) is not None:
            return True
        derived = self.alias_map.derive(lang)
        return derived is not None and self.cache.try_get(derived) is not None

    # --- merging / saving ---

    def merge_translation_documents(self, new_doc: XliffDocument, old_doc_path: str,
                                    output_path: Optional[str] = None) -> XliffDocument:
        old_doc = XliffParser.read(old_doc_path)
        output = XliffMerger(verbose=True).merge(new_doc, old_doc)

        output.source_lang = old_doc.source_lang
        output.product_version = old_doc.product_version
        output.hard_linebreak_replacement = old_doc.hard_linebreak_replacement
        output.ampersand_replacement = old_doc.ampersand_replacement
        output.original = old_doc.original
        output.datatype = old_doc.datatype

        if output_path is None:
            output_path = os.path.join(tempfile.gettempdir(),
                                       os.path.basename(self.get_file_name_for_language(self.default_lang)))
        XliffParser.write(output, output_path)
        output.is_dirty = False
        return output

    def save_if_dirty(self, force_langs: Optional[Iterable[str]] = None):
        try:
            self.cache.save_if_dirty(force_langs)
        except DocumentSaveError:
            self.can_customize_localizations = False
            raise

    @property
    def is_dirty(self) -> bool:
        return self.cache.is_dirty
