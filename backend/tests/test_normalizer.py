"""
Tests for Arabic name normalization, lineage splitting and phonetic keys.
"""
import math

import pytest

from mizan.normalizer import (
    ArabicNormalizer,
    children_tokens,
    coerce_text,
    has_placeholder,
    normalize,
    normalize_name,
    phone_digits,
    split_lineage,
)
from mizan.phonetic import ArabicSkeleton


class TestNormalize:
    """Letter unification and cleanup."""

    @pytest.mark.parametrize("raw,expected", [
        ("أحمد", "احمد"),
        ("إبراهيم", "ابراهيم"),
        ("آمنة", "امنه"),
        ("مصطفى", "مصطفي"),
        ("فاطمة", "فاطمه"),
        ("مُحَمَّد", "محمد"),
        ("علـــي", "علي"),
        ("سماء", "سما"),
        ("يحيى", "يحي"),
    ])
    def test_letter_variants(self, raw, expected):
        """Test alef, yaa and taa marbuta forms are unified."""
        assert normalize(raw) == expected

    def test_whitespace_collapsed(self):
        """Test runs of whitespace collapse to one space."""
        assert normalize("  فاطمة   أحمد \t علي ") == "فاطمه احمد علي"

    def test_punctuation_removed(self):
        """Test punctuation is stripped."""
        assert normalize("فاطمة-أحمد، علي.") == "فاطمه احمد علي"

    def test_zero_width_characters_dropped(self):
        """Test zero-width and combining marks are dropped."""
        assert normalize("مح\u200bمد") == "محمد"

    def test_arabic_indic_digits(self):
        """Test Arabic-Indic digits become ASCII."""
        assert normalize("٧٧١") == "771"
        assert normalize("۷۷۱") == "771"

    def test_latin_transliterated_and_lowercased(self):
        """Test Latin text is transliterated and lower-cased."""
        assert normalize("Fatima ALI") == "fatima ali"
        assert normalize("Zoë") == "zoe"

    @pytest.mark.parametrize("raw", [None, "", "   ", float("nan")])
    def test_missing_values_are_empty(self, raw):
        """Test None and NaN normalize to an empty string."""
        assert normalize(raw) == ""

    @pytest.mark.parametrize("raw", [
        "فاطِمَة  أحمد",
        "أمة الرحمن يحيى",
        "Fatima أحمد ٧٧",
        "عبد الله",
    ])
    def test_idempotent(self, raw):
        """Test normalizing twice changes nothing."""
        once = normalize(raw)
        assert normalize(once) == once


class TestSplitLineage:
    """Compound given names count as one lineage position."""

    def test_dictionary_compounds(self):
        """Test listed compounds fuse into one token."""
        assert split_lineage(normalize("عبد الله محمد نور الدين")) == ["عبدالله", "محمد", "نورالدين"]

    def test_taa_marbuta_compound(self):
        """Test compounds still fuse after taa marbuta folding."""
        assert split_lineage(normalize("أمة الله علي")) == ["امهالله", "علي"]

    def test_prefix_rule(self):
        """Test prefix words fuse with the following name."""
        assert split_lineage(normalize("عبد الباسط علي")) == ["عبدالباسط", "علي"]

    def test_suffix_rule(self):
        """Test suffix words fuse with the preceding name."""
        assert split_lineage(normalize("حمد الله علي")) == ["حمدالله", "علي"]

    def test_fused_input_is_stable(self):
        """Test already fused names are left alone."""
        assert split_lineage("عبدالله محمد") == ["عبدالله", "محمد"]

    def test_plain_names_untouched(self):
        """Test plain names split on whitespace."""
        assert split_lineage("فاطمه احمد علي الحسني") == ["فاطمه", "احمد", "علي", "الحسني"]

    def test_empty(self):
        """Test empty input gives no tokens."""
        assert split_lineage("") == []

    def test_normalize_name(self):
        """Test parse result fields."""
        result = normalize_name("عبد الله  صالح")
        assert result.normalized == "عبد الله صالح"
        assert result.tokens == ["عبدالله", "صالح"]
        assert result.first_token == "عبدالله"


class TestPlaceholderWords:
    """Administrative wording typed into name fields."""

    def test_under_investigation(self):
        """Test "under investigation" wording is detected."""
        assert has_placeholder(split_lineage(normalize("فاطمة تحت التحقيق")))

    def test_plain_name(self):
        """Test an ordinary lineage has no placeholder."""
        assert not has_placeholder(split_lineage(normalize("فاطمة أحمد علي الحسني")))

    def test_whole_token_only(self):
        """A name that merely contains a placeholder word is not flagged."""
        assert not has_placeholder(["غيري", "قيدار"])

    def test_empty(self):
        """Test an empty token list has no placeholder."""
        assert not has_placeholder([])


class TestPhoneAndChildren:
    """Phone digits, identifiers and children lists."""

    @pytest.mark.parametrize("raw,expected", [
        ("+967 771-234-567", "234567"),
        ("٧٧١٢٣٤٥٦٧", "234567"),
        (771234567.0, "234567"),
        ("1234", "1234"),
        (None, ""),
    ])
    def test_phone_digits(self, raw, expected):
        """Test phones reduce to their trailing digits."""
        assert phone_digits(raw) == expected

    def test_identifier(self):
        """Test identifiers lose spaces and are upper-cased."""
        normalizer = ArabicNormalizer()
        assert normalizer.identifier(" ab 12 ٣ ") == "AB123"
        assert normalizer.identifier(1001.0) == "1001"

    def test_children_from_delimited_string(self):
        """Test children split on common delimiters."""
        assert children_tokens("أحمد، فاطمة; علي|  ") == frozenset({"احمد", "فاطمه", "علي"})

    def test_children_from_list(self):
        """Test children given as a list."""
        assert children_tokens(["أحمد", "", None]) == frozenset({"احمد"})

    def test_children_missing(self):
        """Test missing children give an empty set."""
        assert children_tokens(None) == frozenset()


class TestCoerceText:
    def test_integer_float(self):
        """Test whole floats lose their trailing .0."""
        assert coerce_text(771234567.0) == "771234567"

    def test_nan(self):
        """Test NaN becomes an empty string."""
        assert coerce_text(math.nan) == ""

    def test_passthrough(self):
        """Test integers become their decimal text."""
        assert coerce_text(12) == "12"


class TestArabicSkeleton:
    """Consonant skeleton used for name blocking."""

    def test_weak_letters_dropped(self):
        """Test weak letters drop out of the skeleton."""
        encoder = ArabicSkeleton()
        assert encoder.encode("محمد") == "8683"
        assert encoder.encode("محمود") == encoder.encode("محمد")

    def test_definite_article_ignored(self):
        """Test the definite article does not change the code."""
        encoder = ArabicSkeleton()
        assert encoder.encode("الحسني") == encoder.encode("حسني")

    def test_emphatic_pairs_share_code(self):
        """Test emphatic consonants share a code with their plain pair."""
        encoder = ArabicSkeleton()
        assert encoder.encode("سالم") == encoder.encode("صالم")

    def test_padding_and_empty(self):
        """Test short codes are zero padded."""
        encoder = ArabicSkeleton()
        assert encoder.encode("علي") == "6700"
        assert encoder.encode("") == ""
        assert encoder.encode("اوي") == ""

    def test_encode_tokens(self):
        """Test empty codes are dropped from token lists."""
        assert ArabicSkeleton(code_length=2).encode_tokens(["محمد", "", "علي"]) == ["86", "67"]
