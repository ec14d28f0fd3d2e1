import re
from typing import Optional, Tuple

REFERENCE_PATTERNS = [
    r"^(?P<book>.+?)\s+(?P<chapter>\d+):(?P<verse>\d+)(?:\s*-\s*(?P<verse_end>\d+))?$",
    r"^(?P<book>(?:[1-3]\s*)?[^\d\s][^\d]*?)(?P<chapter>\d+):(?P<verse>\d+)(?:-(?P<verse_end>\d+))?$",
]


def parse_reference(reference: str) -> Tuple[str, int, int, Optional[int]]:
    raw = re.sub(r"\s+", " ", (reference or "").strip())
    for pat in REFERENCE_PATTERNS:
        m = re.match(pat, raw)
        if not m:
            continue
        book_name = m.group("book").strip()
        ch = int(m.group("chapter"))
        vs = int(m.group("verse"))
        vs_end = int(m.group("verse_end")) if m.group("verse_end") else None
        if ch <= 0 or vs <= 0:
            break
        if vs_end is not None and vs_end < vs:
            break
        return book_name, ch, vs, vs_end

    raise ValueError(f"invalid reference: {reference}")


def validate_coordinates(chapter: int, verse_from: int, verse_to: Optional[int]) -> bool:
    if chapter is None or verse_from is None:
        return False
    if int(chapter) <= 0 or int(verse_from) <= 0:
        return False
    if verse_to is not None and int(verse_to) < int(verse_from):
        return False
    return True
