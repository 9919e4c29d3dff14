#!/usr/bin/env python3

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping

import yaml

# Set up logging
logger = logging.getLogger(__name__)

FALLBACK_LOCALE = "en"
TRANSLATION_FILE = "relationships.yaml"


class TranslationService:
    """Read-only kinship phrase table keyed by locale.

    Lookups fall back from the requested locale to English and finally to
    the raw key, so translate() never fails.
    """

    def __init__(self, tables: Mapping[str, Mapping[str, str]]):
        self._tables = MappingProxyType({
            locale: MappingProxyType(dict(entries)) for locale, entries in tables.items()
        })

    @classmethod
    def from_directory(cls, locales_dir: str) -> "TranslationService":
        """Load every <locale>/relationships.yaml below locales_dir.

        Locale directories without the file are skipped; a file that is not
        valid YAML raises.
        """
        tables: Dict[str, Dict[str, str]] = {}
        root = Path(locales_dir)
        if not root.is_dir():
            logger.warning(f"Locales directory not found: {locales_dir}")
            return cls(tables)

        for locale_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            file_path = locale_dir / TRANSLATION_FILE
            if not file_path.is_file():
                continue
            with open(file_path, "r", encoding="utf-8") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ValueError(f"Failed to parse {file_path}: {e}") from e
            entries = data.get("RELATIONSHIPS") or {}
            tables[locale_dir.name] = {str(k): str(v) for k, v in entries.items()}
            logger.info(f"Loaded {len(entries)} translations for locale '{locale_dir.name}'")

        return cls(tables)

    @property
    def locales(self):
        return sorted(self._tables)

    def has(self, locale: str, key: str) -> bool:
        return key in self._tables.get(locale, {}) or key in self._tables.get(FALLBACK_LOCALE, {})

    def translate(self, locale: str, key: str) -> str:
        table = self._tables.get(locale)
        if table is not None and key in table:
            return table[key]
        if locale != FALLBACK_LOCALE:
            fallback = self._tables.get(FALLBACK_LOCALE)
            if fallback is not None and key in fallback:
                return fallback[key]
        return key
