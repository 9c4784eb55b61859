from typing import Dict, Iterable, List, Optional, Tuple

from .logger import get_logger

logger = get_logger(__name__)


def base_language(tag: str) -> str:
    """'es-ES' -> 'es'"""
    return tag.split("-")[0]


class LanguageAliasMap:
    """
    Maps a requested language tag onto the tag actually present in the loaded data,
    e.g. "es" -> "es-ES" when the only Spanish file declares es-ES.

    Entries are only ever added or re-pointed, never removed. An identity entry
    (tag -> tag) always overrides an inferred one.
    """

    def __init__(self):
        self._map: Dict[str, str] = {}

    def __contains__(self, tag) -> bool:
        return tag in self._map

    def __len__(self):
        return len(self._map)

    def get(self, tag: str) -> Optional[str]:
        return self._map.get(tag)

    def items(self):
        return list(self._map.items())

    def resolve(self, tag: Optional[str]) -> Optional[str]:
        if not tag:
            return tag
        return self._map.get(tag, tag)

    def set_identity(self, tag: str):
        self._map[tag] = tag

    def add_inferred(self, general: str, specific: str) -> bool:
        if general in self._map:
            return False
        self._map[general] = specific
        return True

    def correct(self, general: str, expected: str, new: str) -> bool:
        """Re-points general to new, but only if it still points at expected."""
        if self._map.get(general) != expected:
            return False
        self._map[general] = new
        return True

    def derive(self, tag: str) -> Optional[str]:
        """
        For a regional tag with no entry of its own, borrow the mapping of its base
        language and remember it so later lookups skip the derivation.
        """
        if not tag or tag in self._map or "-" not in tag:
            return None
        target = self._map.get(base_language(tag))
        if target is None:
            return None
        self._map[tag] = target
        logger.debug(f"Mapped {tag} -> {target}")
        return target


def compute_fallback_chain(ui_lang: str, available: Iterable[str], default_lang: str) -> Tuple[str, List[str]]:
    """
    Returns (effective UI language, fallback chain).

    The chain lists every available language sharing the UI language's base tag.
    When the exact UI language is not available but a relative is, the first
    relative becomes the UI language. The default language always ends the chain.
    """
    ui_base = base_language(ui_lang)
    chain: List[str] = []
    exact_match = False
    for lang in available:
        if lang == ui_lang:
            exact_match = True
            continue
        if base_language(lang) == ui_base and lang not in chain:
            chain.append(lang)
    if not exact_match and chain:
        ui_lang = chain.pop(0)
    if default_lang not in chain:
        chain.append(default_lang)
    return ui_lang, chain
