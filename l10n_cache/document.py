from typing import Dict, Iterable, Iterator, List, Optional

from .xliff_obj import (
    DEFAULT_AMPERSAND_REPLACEMENT,
    DEFAULT_LANG,
    DEFAULT_LITERAL_NEWLINE,
    TranslationUnit,
    Variant,
    get_terminal_id_part,
    has_derived_suffix,
)


def unit_sort_key(unit: TranslationUnit):
    """Orders units by (group, id) with ordinal comparison; units without a group come first."""
    return (unit.group is not None, unit.group or "", unit.id)


class XliffDocument:
    """
    All translation units of one localization file (one target language).

    Any structural change sets is_dirty; the flag is cleared only by whoever
    persists the document.
    """

    def __init__(self, source_lang: str = DEFAULT_LANG, target_lang: Optional[str] = None,
                 product_version: str = "0.0.0", original: Optional[str] = None,
                 datatype: str = "plaintext",
                 hard_linebreak_replacement: Optional[str] = DEFAULT_LITERAL_NEWLINE,
                 ampersand_replacement: Optional[str] = DEFAULT_AMPERSAND_REPLACEMENT):
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.product_version = product_version
        self.original = original
        self.datatype = datatype
        self.hard_linebreak_replacement = hard_linebreak_replacement
        self.ampersand_replacement = ampersand_replacement
        self._units: Dict[str, TranslationUnit] = {}
        self.is_dirty = False

    @classmethod
    def create_empty(cls, source_lang: str = DEFAULT_LANG, product_version: str = "0.0.0",
                     hard_linebreak_replacement: Optional[str] = DEFAULT_LITERAL_NEWLINE,
                     ampersand_replacement: Optional[str] = DEFAULT_AMPERSAND_REPLACEMENT) -> "XliffDocument":
        return cls(source_lang=source_lang, product_version=product_version,
                   hard_linebreak_replacement=hard_linebreak_replacement,
                   ampersand_replacement=ampersand_replacement)

    @property
    def language(self) -> str:
        """The language whose text this document supplies."""
        return self.target_lang or self.source_lang

    # --- unit table ---

    def __len__(self):
        return len(self._units)

    def __iter__(self) -> Iterator[TranslationUnit]:
        return iter(list(self._units.values()))

    def __contains__(self, unit_id) -> bool:
        return unit_id in self._units

    @property
    def units(self) -> List[TranslationUnit]:
        return list(self._units.values())

    def ids(self) -> List[str]:
        return list(self._units.keys())

    def get(self, unit_id: str) -> Optional[TranslationUnit]:
        return self._units.get(unit_id)

    def add_or_replace(self, unit: TranslationUnit):
        # Duplicate ids: last write wins
        self._units[unit.id] = unit
        self.is_dirty = True

    def add_units(self, units: Iterable[TranslationUnit]):
        for unit in units:
            self.add_or_replace(unit)

    def remove(self, unit: TranslationUnit) -> bool:
        if self._units.get(unit.id) is not unit:
            return False
        del self._units[unit.id]
        self.is_dirty = True
        return True

    def rekey(self, unit: TranslationUnit, new_id: str):
        """Moves a unit to a new id, replacing whatever was stored there."""
        if self._units.get(unit.id) is unit:
            del self._units[unit.id]
        unit.id = new_id
        self._units[new_id] = unit
        self.is_dirty = True

    def sort_units(self):
        ordered = sorted(self._units.values(), key=unit_sort_key)
        self._units = {u.id: u for u in ordered}

    def sorted_units(self) -> List[TranslationUnit]:
        return sorted(self._units.values(), key=unit_sort_key)

    # --- lookups ---

    def translation_variant(self, unit: TranslationUnit) -> Optional[Variant]:
        if self.target_lang is None or self.target_lang == unit.source_lang:
            return unit.get_variant(unit.source_lang)
        variant = unit.variants.get(self.target_lang)
        if variant is not None:
            return variant
        # A file in an "es" folder declaring "es-ES" may still tag its targets "es"
        base = self.target_lang.split("-")[0]
        related = [v for lang, v in unit.variants.items() if lang.split("-")[0] == base]
        return related[0] if len(related) == 1 else None

    def translation_for(self, unit: TranslationUnit) -> Optional[str]:
        variant = self.translation_variant(unit)
        return variant.value if variant is not None else None

    def find_orphan_match(self, orphan: TranslationUnit, claimed_ids: Iterable[str] = ()) -> Optional[TranslationUnit]:
        """
        Finds the unit of this (default-language) document that an orphaned unit
        from another document most likely was renamed to.

        A candidate has exactly the orphan's non-empty source text, is not a
        tooltip/shortcut unit and its id is not in claimed_ids. One candidate
        wins outright; among several, the single one sharing the orphan's last
        id segment wins. Anything else is no match.
        """
        if has_derived_suffix(orphan.id) or not orphan.source:
            return None
        claimed = set(claimed_ids)
        candidates = [
            u for u in self._units.values()
            if u.source == orphan.source
            and u.id != orphan.id
            and u.id not in claimed
            and not has_derived_suffix(u.id)
        ]
        if len(candidates) == 1:
            return candidates[0]
        if not candidates:
            return None
        terminal = get_terminal_id_part(orphan.id)
        same_terminal = [u for u in candidates if get_terminal_id_part(u.id) == terminal]
        return same_terminal[0] if len(same_terminal) == 1 else None

    def add_unit_or_variant_from_existing(self, unit: TranslationUnit, lang: str):
        """
        Adds a unit from another document when this one lacks it, otherwise adds
        the other unit's variant for lang if this unit has none.
        """
        existing = self._units.get(unit.id)
        if existing is None:
            self.add_or_replace(unit)
            return
        variant = unit.get_variant(lang)
        if variant is not None and existing.get_variant(lang) is None:
            existing.add_or_replace_variant(variant)
            self.is_dirty = True

    # --- statistics ---

    @property
    def string_count(self) -> int:
        return len(self._units)

    @property
    def number_translated(self) -> int:
        count = 0
        for unit in self._units.values():
            if self.translation_for(unit):
                count += 1
        return count

    @property
    def number_approved(self) -> int:
        count = 0
        for unit in self._units.values():
            variant = self.translation_variant(unit)
            if variant is not None and variant.value and variant.approved:
                count += 1
        return count
