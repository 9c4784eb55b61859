"""
Adapters that let PyQt6 widgets and actions take part in a ComponentRegistry.
Requires the optional PyQt6 dependency.
"""
from typing import Optional

from PyQt6.QtGui import QKeySequence

from .components import ComponentRegistry


class QtWidgetAdapter:
    """Wraps any Qt object with text()/setText() and toolTip()/setToolTip()."""

    def __init__(self, widget):
        self.widget = widget

    def get_text(self) -> Optional[str]:
        return self.widget.text()

    def set_text(self, text: str):
        self.widget.setText(text)

    def get_tooltip(self) -> Optional[str]:
        return self.widget.toolTip()

    def set_tooltip(self, text: str):
        self.widget.setToolTip(text)

    def set_shortcut(self, keys: str):
        # QAction has shortcuts, QLabel does not
        if hasattr(self.widget, "setShortcut"):
            self.widget.setShortcut(QKeySequence(keys))


def register_qt_object(registry: ComponentRegistry, obj, unit_id: str, default_text: Optional[str] = None,
                       tooltip: Optional[str] = None, shortcut: Optional[str] = None,
                       comment: Optional[str] = None) -> QtWidgetAdapter:
    adapter = QtWidgetAdapter(obj)
    registry.register(adapter, unit_id, default_text, tooltip, shortcut, comment)
    return adapter
