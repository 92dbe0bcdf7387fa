import logging
import re
import threading

import pycountry

from babel import Locale, UnknownLocaleError
from babel.localedata import locale_identifiers

from dataclasses import dataclass
from overrides import override
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .data_structs import UNDETERMINED_LANGUAGE


DEFAULT_AUDIO_DESCRIPTION_PATTERNS = ("Audiodeskription", "_AD")

BRACKETS_PATTERN = re.compile(r"(?<=\()[^)]*(?=\))|(?<=\[)[^\]]*(?=\])")
WORD_SEPARATORS = re.compile(r"[ .\-_]")
QUALIFIERS_PATTERN = re.compile(r"\s*\([^)]*\)")


def unify_lang(lang: str) -> str:
    lang_info = pycountry.languages.get(alpha_2 = lang) if len(lang) == 2 else pycountry.languages.get(alpha_3 = lang)
    if lang_info:
        return lang_info.alpha_3
    else:
        # try to look for in biliographic set
        lang_info = pycountry.languages.get(bibliographic = lang)
        if lang_info:
            return lang_info.alpha_3
        else:
            raise ValueError(f"Invalid or unsupported language code: {lang}")


def language_name(lang: str | None) -> str:
    """Return a human friendly language name for ``lang`` code.

    If ``lang`` is ``None``, undetermined or not recognized, ``"Unknown"`` is returned.
    """

    if not lang or lang == UNDETERMINED_LANGUAGE:
        return "Unknown"

    try:
        lang_code = unify_lang(lang)
    except ValueError:
        return lang

    lang_info = pycountry.languages.get(alpha_3=lang_code)
    return lang_info.name if lang_info else lang


def name_variants(name: str) -> List[str]:
    """
        Return 'name' followed by its simpler forms:
        'Spanish; Castilian' gives 'Spanish' and 'Castilian', 'Modern Greek (1453-)' gives 'Modern Greek'.
    """
    variants = [name]
    for part in QUALIFIERS_PATTERN.sub("", name).split(";"):
        part = part.strip()
        if part and part not in variants:
            variants.append(part)

    return variants


@dataclass(frozen=True)
class LocaleEntry:
    iso2: str
    iso3: str
    english_name: str
    locale_code: str
    native_name: str
    display_names: tuple[str, ...] = ()

    def names(self) -> List[str]:
        return [self.iso3, self.iso2, self.english_name, self.locale_code, self.native_name, *self.display_names]


class LocaleCatalog:
    """
        Directory of known languages.

        Entries are loaded once, on first access, and are never modified afterwards,
        so a catalog may be shared freely between threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: List[LocaleEntry] | None = None
        self._index: Dict[str, LocaleEntry] = {}

    def _load(self) -> Iterable[LocaleEntry]:
        raise NotImplementedError()

    def _ensure_loaded(self) -> None:
        if self._entries is not None:
            return

        with self._lock:
            if self._entries is None:
                entries = list(self._load())
                index: Dict[str, LocaleEntry] = {}
                for entry in entries:
                    for name in entry.names():
                        if name:
                            index.setdefault(name.casefold(), entry)

                self._index = index
                self._entries = entries
                logging.debug(f"Locale catalog initialized with {len(entries)} entries")

    def entries(self) -> List[LocaleEntry]:
        self._ensure_loaded()
        return list(self._entries or [])

    def lookup(self, text: str) -> LocaleEntry | None:
        self._ensure_loaded()
        return self._index.get(text.strip().casefold())


class StaticLocaleCatalog(LocaleCatalog):
    def __init__(self, entries: Sequence[LocaleEntry]) -> None:
        super().__init__()
        self._static_entries = list(entries)

    @override
    def _load(self) -> Iterable[LocaleEntry]:
        return self._static_entries


class CldrLocaleCatalog(LocaleCatalog):
    """
        Catalog built from CLDR locale data shipped with babel.
        Each locale ('de', 'de_AT', 'en_US', ...) of a language with a two letter
        ISO 639 code becomes one entry. Its code matches with '_' and '-' ('en-US').
        ISO 639 names from pycountry are added with qualifiers removed
        ('Modern Greek (1453-)' is also matched as 'Modern Greek').
        'display_locales' adds language names as they are written in given languages
        (for example 'Französisch' for 'de').
    """

    def __init__(self, display_locales: Sequence[str] = ("de",)) -> None:
        super().__init__()
        self.display_locales = list(display_locales)

    @staticmethod
    def _parse(identifier: str) -> Locale | None:
        try:
            return Locale.parse(identifier)
        except (ValueError, UnknownLocaleError) as e:
            logging.debug(f"Skipping locale {identifier}: {e}")
            return None

    @override
    def _load(self) -> Iterable[LocaleEntry]:
        english = Locale("en")
        display = [locale for locale in map(self._parse, self.display_locales) if locale is not None]

        for identifier in sorted(locale_identifiers()):
            locale = self._parse(identifier)
            if locale is None:
                continue

            language = pycountry.languages.get(alpha_2=locale.language)
            if not language:
                continue

            english_name = english.languages.get(locale.language, language.name)
            native_name = locale.get_language_name() or english_name

            names = name_variants(language.name)
            names.extend(d.languages[locale.language] for d in display if locale.language in d.languages)
            names.append(identifier)

            yield LocaleEntry(
                iso2=locale.language,
                iso3=language.alpha_3,
                english_name=english_name,
                locale_code=identifier.replace("_", "-"),
                native_name=native_name,
                display_names=tuple(names),
            )


class LanguageResolver:
    def __init__(self, catalog: LocaleCatalog, logger: logging.Logger | None = None) -> None:
        self.catalog = catalog
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def _candidates(name: str, permissive: bool) -> List[str]:
        results: List[str] = []

        def add(candidate: str) -> None:
            candidate = candidate.strip()
            if candidate and candidate not in results:
                results.append(candidate)

        for match in BRACKETS_PATTERN.finditer(name):
            add(match.group(0))

        # extension like segments: 'Title.de.srt'
        for segment in reversed(name.split(".")):
            segment = segment.strip()
            if len(segment) in (2, 3):
                add(segment)
            elif len(segment) > 3:
                break

        for word in WORD_SEPARATORS.split(name):
            if not permissive and len(word.strip()) < 4:
                continue
            add(word)

        return results

    def resolve(self, name: str, permissive: bool = False) -> str:
        self.logger.debug(f"Looking for language in: {name}")

        entry = self.catalog.lookup(name)
        if entry is None:
            for candidate in self._candidates(name, permissive):
                entry = self.catalog.lookup(candidate)
                if entry is not None:
                    break

        if entry is None:
            self.logger.debug(f"No language found for: {name}")
            return UNDETERMINED_LANGUAGE

        return entry.iso3

    def resolve_file(self, path: str) -> str:
        return self.resolve(Path(path).stem)


class AudioDescriptionClassifier:
    def __init__(self, patterns: Sequence[str] | None = None) -> None:
        # empty configuration means defaults
        patterns = [p for p in (patterns or []) if p] or list(DEFAULT_AUDIO_DESCRIPTION_PATTERNS)
        self.patterns = [p.casefold() for p in patterns]

    def is_audio_description(self, name: str) -> bool:
        if not name:
            return False

        name = name.casefold()
        return any(pattern in name for pattern in self.patterns)
