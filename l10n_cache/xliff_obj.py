from dataclasses import dataclass, field
from typing import List, Dict, Optional

DEFAULT_LANG = "en"

# Tooltip and shortcut units are stored under the base id plus one of these suffixes
TOOLTIP_SUFFIX = "_ToolTip_"
SHORTCUT_SUFFIX = "_ShortcutKeys_"

# Host default texts may be decorated as "_L10N_:<group>!<text>"
L10N_PREFIX = "_L10N_:"

DEFAULT_LITERAL_NEWLINE = "\\n"
DEFAULT_AMPERSAND_REPLACEMENT = "|amp|"

ID_NOTE_PREFIX = "ID: "


def get_base_id(unit_id: str) -> str:
    """Strips a tooltip or shortcut suffix, if present."""
    for suffix in (TOOLTIP_SUFFIX, SHORTCUT_SUFFIX):
        if unit_id.endswith(suffix):
            return unit_id[: -len(suffix)]
    return unit_id


def has_derived_suffix(unit_id: str) -> bool:
    return get_base_id(unit_id) != unit_id


def get_terminal_id_part(unit_id: str) -> str:
    return unit_id.split(".")[-1]


def strip_localization_prefix(text: Optional[str]) -> Optional[str]:
    if text is None or not text.startswith(L10N_PREFIX):
        return text
    text = text[len(L10N_PREFIX):]
    i = text.find("!")
    return text if i < 0 else text[i + 1:]


@dataclass
class Note:
    text: str
    lang: str = DEFAULT_LANG


@dataclass
class Variant:
    """A language-specific value of a translation unit."""
    lang: str
    value: str = ""
    approved: bool = False


@dataclass
class TranslationUnit:
    """
    Represents a single translation unit (trans-unit) of a localization file.
    The source is the default-language text; every other language lives in variants.
    """
    id: str
    source: str = ""
    source_lang: str = DEFAULT_LANG
    variants: Dict[str, Variant] = field(default_factory=dict)
    notes: List[Note] = field(default_factory=list)

    dynamic: bool = False  # discovered at runtime rather than by static scan
    group: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None

    def get_variant(self, lang: str) -> Optional[Variant]:
        if lang == self.source_lang:
            return Variant(self.source_lang, self.source, approved=True)
        return self.variants.get(lang)

    def add_or_replace_variant(self, variant: Optional[Variant]):
        if variant is None:
            return
        if variant.lang == self.source_lang:
            self.source = variant.value
        else:
            self.variants[variant.lang] = variant

    def target_variants(self) -> List[Variant]:
        return list(self.variants.values())

    def add_note(self, text: str, lang: str = DEFAULT_LANG):
        self.notes.append(Note(text=text, lang=lang))

    def has_note(self, text: str) -> bool:
        return any(n.text == text for n in self.notes)

    def copy_notes(self) -> List[Note]:
        return [Note(n.text, n.lang) for n in self.notes]

    @property
    def comment(self) -> Optional[str]:
        # The "ID: ..." note only repeats the id
        for note in self.notes:
            if not note.text.startswith(ID_NOTE_PREFIX):
                return note.text
        return None


@dataclass
class HarvestRecord:
    """One localizable string as produced by a harvester."""
    id: str
    default_text: str
    tooltip: Optional[str] = None
    shortcut_keys: Optional[str] = None
    comment: Optional[str] = None
    is_dynamic: bool = False
