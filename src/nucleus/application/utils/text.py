import re
import unicodedata

# ---------- Normalization for duplicate detection ----------

_PUNCTUATION_RE = re.compile(r"""[.,;:\-_?!()\[\]{}"'/\\]""")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str | None) -> str:
    """Lowercase, strip accents and punctuation, and collapse whitespace.

    >>> normalize_text("  Art. 5º, caput! ")
    'art 5º caput'
    """
    if not text:
        return ""
    out = strip_accents(text.strip().lower())
    out = _PUNCTUATION_RE.sub("", out)
    out = _WHITESPACE_RE.sub(" ", out)
    return out.strip()


def content_fingerprint(owner_key: str | None, primary_text: str | None) -> str:
    """
    Build the duplicate-detection fingerprint ``owner|text``.

    Returns an empty string when both halves normalize to nothing, so that
    incomplete records never collapse into one another.
    """
    owner = normalize_text(owner_key)
    body = normalize_text(primary_text)
    if not owner and not body:
        return ""
    return f"{owner}|{body}"
