"""
Производные текстовые поля для статей и курсов: slug, краткое описание, время чтения.
"""
import math
import re
import unicodedata

EXCERPT_LENGTH = 150
WORDS_PER_MINUTE = 200


def slugify(value: str, fallback: str = "item") -> str:
    """'Green Roofs: 2024 Guide' -> 'green-roofs-2024-guide'"""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or fallback


def make_excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


def read_time_minutes(text: str) -> int:
    words = len(text.split())
    return math.ceil(words / WORDS_PER_MINUTE) if words else 0
