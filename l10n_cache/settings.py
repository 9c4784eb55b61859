import os
import json
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, List, Optional, Any

from .logger import get_logger
from .xliff_obj import DEFAULT_AMPERSAND_REPLACEMENT, DEFAULT_LANG, DEFAULT_LITERAL_NEWLINE

logger = get_logger(__name__)

CONFIG_FILE = "l10n_settings.json"


@dataclass
class LocalizationSettings:
    default_lang: str = DEFAULT_LANG
    file_extension: str = ".xlf"
    use_language_code_folders: bool = False  # {lang}/{appId}.xlf instead of {appId}.{lang}.xlf
    ignore_existing_default_files: bool = False
    return_only_approved: bool = False
    collect_dynamic_strings: bool = False
    literal_newline: str = DEFAULT_LITERAL_NEWLINE
    ampersand_replacement: str = DEFAULT_AMPERSAND_REPLACEMENT
    fallback_languages: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalizationSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SettingsManager:
    """
    Loads and saves LocalizationSettings as JSON.
    A missing or unreadable file means defaults.
    """
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or CONFIG_FILE
        self.settings = self._load_config()

    def _load_config(self) -> LocalizationSettings:
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return LocalizationSettings.from_dict(data)
                logger.error(f"Failed to load config: {self.config_path} does not hold an object")
            except (OSError, ValueError, TypeError) as e:
                logger.error(f"Failed to load config: {e}")

        return LocalizationSettings()

    def save_config(self):
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.settings.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def get(self, key: str, default=None):
        return getattr(self.settings, key, default)

    def set(self, key: str, value):
        if not hasattr(self.settings, key):
            raise KeyError(key)
        setattr(self.settings, key, value)
        self.save_config()
