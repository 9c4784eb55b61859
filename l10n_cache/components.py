from dataclasses import dataclass
from typing import Dict, Optional, Protocol, runtime_checkable

from .logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class LocalizableHost(Protocol):
    """Anything that shows a text and a tooltip: a widget, a menu action, a test double."""

    def get_text(self) -> Optional[str]: ...

    def set_text(self, text: str) -> None: ...

    def get_tooltip(self) -> Optional[str]: ...

    def set_tooltip(self, text: str) -> None: ...


@dataclass
class HostEntry:
    host: LocalizableHost
    id: str
    default_text: Optional[str] = None
    tooltip: Optional[str] = None
    shortcut: Optional[str] = None


class ComponentRegistry:
    """
    Host objects registered against string ids. Text is pushed into a host when it
    is registered and again whenever the manager's UI language changes.
    """

    def __init__(self, manager):
        self.manager = manager
        self._entries: Dict[int, HostEntry] = {}

    def __len__(self):
        return len(self._entries)

    def __contains__(self, host) -> bool:
        return id(host) in self._entries

    def register(self, host: LocalizableHost, unit_id: str, default_text: Optional[str] = None,
                 tooltip: Optional[str] = None, shortcut: Optional[str] = None,
                 comment: Optional[str] = None):
        if host is None or not unit_id or not unit_id.strip():
            return
        if default_text is None:
            default_text = host.get_text()
        if tooltip is None:
            tooltip = host.get_tooltip() or None

        self.manager.add_or_update(unit_id, default_text, tooltip, shortcut, comment)
        entry = HostEntry(host, unit_id, default_text, tooltip, shortcut)
        self._entries[id(host)] = entry
        self._apply(entry)

    def unregister(self, host) -> bool:
        return self._entries.pop(id(host), None) is not None

    def clear(self):
        self._entries.clear()

    def apply_localization(self, host) -> bool:
        entry = self._entries.get(id(host))
        if entry is None:
            return False
        self._apply(entry)
        return True

    def reapply_all(self):
        for entry in list(self._entries.values()):
            self._apply(entry)

    def _apply(self, entry: HostEntry):
        lang = self.manager.ui_language
        text = self.manager.get_localized_string(entry.id, entry.default_text)
        if text is not None and entry.host.get_text() != text:
            entry.host.set_text(text)

        tooltip = self.manager.resolve_tooltip(lang, entry.id) or entry.tooltip
        if tooltip is not None and entry.host.get_tooltip() != tooltip:
            entry.host.set_tooltip(tooltip)

        setter = getattr(entry.host, "set_shortcut", None)
        if setter is not None:
            shortcut = self.manager.resolve_shortcut(lang, entry.id) or entry.shortcut
            if shortcut:
                setter(shortcut)
