"""Name normalization and similarity scoring for name rules."""

import re
import unicodedata

from rapidfuzz.distance import JaroWinkler

# Matches any sequence of whitespace (including Unicode whitespace like U+2006)
_WHITESPACE_RE = re.compile(r'\s+')


def strip_invisible(text: str) -> str:
    """Remove invisible format characters and normalize whitespace.

    Bot names commonly pad a copied name with zero-width characters
    (category 'Cf', e.g. U+200B, U+200F) so it is not byte-equal to the
    player it impersonates.

    Args:
        text: Raw player name.

    Returns:
        Name without format characters, whitespace collapsed and stripped.
    """
    visible = ''.join(ch for ch in text if unicodedata.category(ch) != 'Cf')
    return _WHITESPACE_RE.sub(' ', visible).strip()


def normalize_for_tolerant_comparison(text: str) -> str:
    """Normalize text for tolerant name comparison.

    Applies NFKC to fold look-alike compatibility characters, removes
    accents via NFD decomposition, drops invisible characters, whitespace
    and common separators, then uppercases.

    Args:
        text: Raw name string.

    Returns:
        Normalized string for comparison.
    """
    folded = unicodedata.normalize('NFKC', strip_invisible(text))
    # NFD decomposition: split base characters from combining marks
    decomposed = unicodedata.normalize('NFD', folded)
    stripped = ''.join(ch for ch in decomposed if unicodedata.category(ch) != 'Mn')
    for ch in (' ', '-', '.', ',', ';', '_'):
        stripped = stripped.replace(ch, '')
    return stripped.upper()


def name_similarity(name: str, other: str) -> float:
    """Jaro-Winkler similarity of two names after tolerant normalization.

    Args:
        name: Candidate player name.
        other: Name to compare against (usually a rule pattern).

    Returns:
        Similarity between 0.0 and 1.0; identical normalized forms give 1.0.
    """
    norm_name = normalize_for_tolerant_comparison(name)
    norm_other = normalize_for_tolerant_comparison(other)
    if not norm_name or not norm_other:
        return 0.0
    if norm_name == norm_other:
        return 1.0
    return round(JaroWinkler.similarity(norm_name, norm_other), 4)
