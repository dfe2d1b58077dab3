"""Tests for botdetector.names module."""

from botdetector.names import name_similarity, normalize_for_tolerant_comparison, strip_invisible


class TestStripInvisible:
    """Tests for removal of invisible characters."""

    def test_zero_width_space(self):
        assert strip_invisible('Ali\u200bce') == 'Alice'

    def test_rtl_mark(self):
        assert strip_invisible('Alice\u200f') == 'Alice'

    def test_collapses_whitespace(self):
        assert strip_invisible('  Juan  Carlos ') == 'Juan Carlos'

    def test_unicode_whitespace(self):
        # U+2006 = Six-Per-Em Space
        assert strip_invisible('a b') == 'a b'


class TestNormalizeForTolerantComparison:
    """Tests for accent/punctuation-tolerant normalization."""

    def test_accent_removal(self):
        assert normalize_for_tolerant_comparison('José') == 'JOSE'
        assert normalize_for_tolerant_comparison('Müller') == 'MULLER'

    def test_fullwidth_folded(self):
        assert normalize_for_tolerant_comparison('\uff21\uff22\uff23') == 'ABC'

    def test_separators_removed(self):
        assert normalize_for_tolerant_comparison('Jean-Pierre_x.y') == 'JEANPIERREXY'

    def test_invisible_removed(self):
        assert normalize_for_tolerant_comparison('swift\u200bless') == 'SWIFTLESS'


class TestNameSimilarity:
    """Tests for fuzzy name similarity."""

    def test_identical(self):
        assert name_similarity('Swiftless', 'swiftless') == 1.0

    def test_single_substitution_high(self):
        assert name_similarity('Swiftl3ss', 'Swiftless') > 0.9

    def test_unrelated_low(self):
        assert name_similarity('Alice', 'OMEGATRONIC') < 0.7

    def test_empty(self):
        assert name_similarity('', 'Alice') == 0.0
