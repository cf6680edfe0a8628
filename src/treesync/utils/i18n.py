from __future__ import annotations

"""
Internationalization (i18n) Utility.

Central catalogue for every user-visible string of the engine: rejection
reasons carried by TreeError subclasses and CLI messages. Keys use
dot-notation over nested JSON locale files and support str.format
interpolation.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"
LOCALES_REL_PATH = os.path.join("..", "interface", "locales")


class I18n:
    """
    Resource manager for locale-specific message catalogues.

    Missing keys and formatting errors never raise: the caller receives the
    supplied default, or the key itself, so a broken catalogue degrades to
    terse messages instead of crashing an operation.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE):
        self._locale = locale
        self._messages: Dict[str, Any] = {}
        self.is_loaded = False

        base_dir = os.path.dirname(os.path.abspath(__file__))
        self._locales_path = os.path.abspath(os.path.join(base_dir, LOCALES_REL_PATH))

        self.load_locale(locale)

    @property
    def locale(self) -> str:
        return self._locale

    def available_locales(self) -> List[str]:
        """List locale identifiers that have a catalogue on disk."""
        if not os.path.isdir(self._locales_path):
            return []
        return sorted(
            os.path.splitext(name)[0]
            for name in os.listdir(self._locales_path)
            if name.endswith(".json")
        )

    def load_locale(self, locale: str) -> None:
        """
        Load the catalogue for a locale, keeping the current one on failure.

        Args:
            locale: ISO identifier of the target language.
        """
        file_path = os.path.join(self._locales_path, f"{locale}.json")

        if not os.path.exists(file_path):
            logger.warning(f"I18n: Locale catalogue missing at '{file_path}'.")
            return

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                messages = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"I18n: Unreadable locale file {file_path}: {e}")
            return

        self._messages = messages if isinstance(messages, dict) else {}
        self._locale = locale
        self.is_loaded = bool(self._messages)
        logger.debug(f"I18n: Loaded locale catalogue: {locale}")

    def t(self, key: str, default: Optional[str] = None, **kwargs: Any) -> str:
        """
        Resolve and format a message by its dot-notation key.

        Args:
            key: Hierarchical identifier (e.g. 'errors.not_found').
            default: Template used when the key is absent.
            **kwargs: Values interpolated into the template.

        Returns:
            str: The formatted message, the default, or the key itself.
        """
        current: Any = self._messages
        for part in key.split("."):
            if not isinstance(current, dict):
                current = None
                break
            current = current.get(part)

        template = current if isinstance(current, str) else default
        if template is None:
            return key

        if not kwargs:
            return template
        try:
            return template.format(**kwargs)
        except (KeyError, IndexError, ValueError) as e:
            logger.debug(f"I18n: Formatting failed for '{key}': {e}")
            return template


i18n = I18n(DEFAULT_LOCALE)
