"""Static book catalog.

Internal book identifiers are normalized lowercase names joined with
underscores ("2_peter", "song_of_solomon", "second_kings"). The upstream text
API expects compact codes ("2peter", "songofsolomon", "2kings").
"""
import re
from typing import Optional

from holyverso.events import log_verse_event

BOOK_API_CODE_MAP = {
    # Old Testament
    "genesis": "genesis",
    "exodus": "exodus",
    "leviticus": "leviticus",
    "numbers": "numbers",
    "deuteronomy": "deuteronomy",
    "joshua": "joshua",
    "judges": "judges",
    "ruth": "ruth",
    "1_samuel": "1samuel",
    "2_samuel": "2samuel",
    "first_samuel": "1samuel",
    "second_samuel": "2samuel",
    "1_kings": "1kings",
    "2_kings": "2kings",
    "first_kings": "1kings",
    "second_kings": "2kings",
    "1_chronicles": "1chronicles",
    "2_chronicles": "2chronicles",
    "first_chronicles": "1chronicles",
    "second_chronicles": "2chronicles",
    "ezra": "ezra",
    "nehemiah": "nehemiah",
    "esther": "esther",
    "job": "job",
    "psalms": "psalms",
    "psalm": "psalms",
    "proverbs": "proverbs",
    "ecclesiastes": "ecclesiastes",
    "song_of_solomon": "songofsolomon",
    "song_of_songs": "songofsolomon",
    "isaiah": "isaiah",
    "jeremiah": "jeremiah",
    "lamentations": "lamentations",
    "ezekiel": "ezekiel",
    "daniel": "daniel",
    "hosea": "hosea",
    "joel": "joel",
    "amos": "amos",
    "obadiah": "obadiah",
    "jonah": "jonah",
    "micah": "micah",
    "nahum": "nahum",
    "habakkuk": "habakkuk",
    "zephaniah": "zephaniah",
    "haggai": "haggai",
    "zechariah": "zechariah",
    "malachi": "malachi",
    # New Testament
    "matthew": "matthew",
    "mark": "mark",
    "luke": "luke",
    "john": "john",
    "acts": "acts",
    "romans": "romans",
    "1_corinthians": "1corinthians",
    "2_corinthians": "2corinthians",
    "galatians": "galatians",
    "ephesians": "ephesians",
    "philippians": "philippians",
    "colossians": "colossians",
    "1_thessalonians": "1thessalonians",
    "2_thessalonians": "2thessalonians",
    "1_timothy": "1timothy",
    "2_timothy": "2timothy",
    "titus": "titus",
    "philemon": "philemon",
    "hebrews": "hebrews",
    "james": "james",
    "1_peter": "1peter",
    "2_peter": "2peter",
    "1_john": "1john",
    "2_john": "2john",
    "3_john": "3john",
    "jude": "jude",
    "revelation": "revelation",
    # Deuterocanon
    "tobit": "tobit",
    "judith": "judith",
    "1_maccabees": "1maccabees",
    "2_maccabees": "2maccabees",
}

ORDINAL_WORDS = {"first": "1", "second": "2", "third": "3"}

SPANISH_BOOK_NAMES = {
    "Genesis": "Génesis",
    "Exodus": "Éxodo",
    "Leviticus": "Levítico",
    "Numbers": "Números",
    "Deuteronomy": "Deuteronomio",
    "Joshua": "Josué",
    "Judges": "Jueces",
    "Ruth": "Rut",
    "1 Samuel": "1 Samuel",
    "2 Samuel": "2 Samuel",
    "1 Kings": "1 Reyes",
    "2 Kings": "2 Reyes",
    "1 Chronicles": "1 Crónicas",
    "2 Chronicles": "2 Crónicas",
    "Ezra": "Esdras",
    "Nehemiah": "Nehemías",
    "Esther": "Ester",
    "Job": "Job",
    "Psalms": "Salmos",
    "Psalm": "Salmos",
    "Proverbs": "Proverbios",
    "Ecclesiastes": "Eclesiastés",
    "Song Of Solomon": "Cantares",
    "Song of Solomon": "Cantares",
    "Song Of Songs": "Cantares",
    "Song of Songs": "Cantares",
    "Isaiah": "Isaías",
    "Jeremiah": "Jeremías",
    "Lamentations": "Lamentaciones",
    "Ezekiel": "Ezequiel",
    "Daniel": "Daniel",
    "Hosea": "Oseas",
    "Joel": "Joel",
    "Amos": "Amós",
    "Obadiah": "Abdías",
    "Jonah": "Jonás",
    "Micah": "Miqueas",
    "Nahum": "Nahúm",
    "Habakkuk": "Habacuc",
    "Zephaniah": "Sofonías",
    "Haggai": "Hageo",
    "Zechariah": "Zacarías",
    "Malachi": "Malaquías",
    "Matthew": "Mateo",
    "Mark": "Marcos",
    "Luke": "Lucas",
    "John": "Juan",
    "Acts": "Hechos",
    "Romans": "Romanos",
    "1 Corinthians": "1 Corintios",
    "2 Corinthians": "2 Corintios",
    "Galatians": "Gálatas",
    "Ephesians": "Efesios",
    "Philippians": "Filipenses",
    "Colossians": "Colosenses",
    "1 Thessalonians": "1 Tesalonicenses",
    "2 Thessalonians": "2 Tesalonicenses",
    "1 Timothy": "1 Timoteo",
    "2 Timothy": "2 Timoteo",
    "Titus": "Tito",
    "Philemon": "Filemón",
    "Hebrews": "Hebreos",
    "James": "Santiago",
    "1 Peter": "1 Pedro",
    "2 Peter": "2 Pedro",
    "1 John": "1 Juan",
    "2 John": "2 Juan",
    "3 John": "3 Juan",
    "Jude": "Judas",
    "Revelation": "Apocalipsis",
    "Tobit": "Tobías",
    "Judith": "Judit",
    "1 Maccabees": "1 Macabeos",
    "2 Maccabees": "2 Macabeos",
}


def normalize_book_name(book: str) -> str:
    return re.sub(r"\s+", "_", (book or "").strip().lower())


def to_upstream_code(book: str) -> str:
    normalized = normalize_book_name(book)
    code = BOOK_API_CODE_MAP.get(normalized)
    if code:
        return code
    fallback = re.sub(r"[_\s]", "", normalized)
    log_verse_event("book_mapping_fallback", {"book": book, "fallback": fallback})
    return fallback


def locale_for_language(language: Optional[str]) -> str:
    return "en" if (language or "").lower().startswith("en") else "es"


def _english_display_name(book: str) -> str:
    words = []
    for word in normalize_book_name(book).split("_"):
        if not word:
            continue
        if word.isdigit():
            words.append(word)
        elif word in ORDINAL_WORDS:
            words.append(ORDINAL_WORDS[word])
        elif word == "of":
            words.append(word)
        else:
            words.append(word[:1].upper() + word[1:])
    return " ".join(words)


def display_name(book: str, locale: str = "en") -> str:
    english = _english_display_name(book)
    if locale == "en":
        return english
    return translate_book_name(english)


def translate_book_name(book_name: str) -> str:
    trimmed = (book_name or "").strip()
    return SPANISH_BOOK_NAMES.get(trimmed, trimmed)


def build_range(verse_from: int, verse_to: Optional[int]) -> str:
    if verse_to is None or verse_to == verse_from:
        return f"{verse_from}"
    return f"{verse_from}-{verse_to}"


def format_reference(book_name: str, chapter: int, verse_from: int, verse_to: Optional[int]) -> str:
    return f"{book_name} {chapter}:{build_range(verse_from, verse_to)}"


def create_reference_key(book: str, chapter: int, verse_from: int, verse_to: int) -> str:
    return f"{normalize_book_name(book)}_{chapter}_{verse_from}_{verse_to}"


def reference_for_entry(entry: dict, language: Optional[str]) -> str:
    name = display_name(entry["book"], locale_for_language(language))
    return format_reference(name, entry["chapter"], entry["verse_from"], entry.get("verse_to"))
