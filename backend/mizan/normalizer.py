"""
MIZAN Normalizer: Arabic Name Normalization

Canonicalizes beneficiary name, phone and children fields with:
- Unicode compatibility normalization (NFKC)
- Diacritic (harakat) and tatweel removal
- Letter unification for orthographic drift (hamza forms, alef maqsura,
  taa marbuta, Persian kaf/yeh)
- Transliteration of non-Arabic remnants to lower-case ASCII
- Compound given-name fusion (عبد الله, ابو بكر, نور الدين, ...)

None of the functions here raise on bad input: missing, None or NaN
values normalize to an empty string or an empty set, which scores zero
similarity against anything.
"""

import math
import re
import unicodedata
from typing import Any, NamedTuple

from unidecode import unidecode


class NormalizedName(NamedTuple):
    """Result of name normalization."""
    original: str
    normalized: str
    tokens: list[str]
    first_token: str


def coerce_text(raw: Any) -> str:
    """Turn a raw cell value into text.

    Spreadsheet readers hand back floats for numeric columns (phones read
    as 771234567.0) and NaN for blanks; both are folded here.
    """
    if raw is None:
        return ''
    if isinstance(raw, float):
        if math.isnan(raw):
            return ''
        if raw.is_integer():
            return str(int(raw))
    return str(raw)


class ArabicNormalizer:
    """
    Arabic personal-name normalizer for beneficiary registers.

    Names are lineage chains (first, father, grandfather, ..., family),
    so the normalizer keeps token order and only fuses tokens that form
    a single given name.

    Example:
        >>> normalizer = ArabicNormalizer()
        >>> normalizer.normalize("فاطِمَة  أحمد")
        'فاطمه احمد'
        >>> normalizer.split_lineage("عبد الله محمد نور الدين")
        ['عبدالله', 'محمد', 'نورالدين']
    """

    # Letter variants mapped to one canonical form (None deletes)
    LETTER_MAP = {
        'أ': 'ا', 'إ': 'ا', 'آ': 'ا', 'ٱ': 'ا',
        'ى': 'ي', 'ی': 'ي', 'ئ': 'ي',
        'ؤ': 'و',
        'ة': 'ه',
        'ک': 'ك', 'گ': 'ك',
        'ء': None,
        'ـ': None,  # tatweel
    }

    # Arabic-Indic and Eastern Arabic-Indic digits
    DIGIT_MAP = {
        **{chr(0x0660 + i): str(i) for i in range(10)},
        **{chr(0x06F0 + i): str(i) for i in range(10)},
    }

    # Whole-token spelling variants, applied after letter unification
    TOKEN_VARIANTS = {
        'يحيي': 'يحي',
    }

    # Fixed compound given names, written the way users type them
    COMPOUND_NAMES = [
        # عبد + divine names
        'عبد الله', 'عبد الرحمن', 'عبد الرحيم', 'عبد الكريم', 'عبد العزيز',
        'عبد الملك', 'عبد السلام', 'عبد القادر', 'عبد الجليل', 'عبد الرزاق',
        'عبد الغني', 'عبد الوهاب', 'عبد الاله', 'عبد الواحد', 'عبد الماجد',
        # امة + divine names
        'امة الله', 'امة الرحمن', 'امة الرحيم', 'امة الكريم',
        # ... الله
        'صنع الله', 'عطاء الله', 'نور الله', 'فتح الله', 'نصر الله',
        'فضل الله', 'رحمة الله', 'حسب الله', 'جود الله',
        # ... الدين
        'نور الدين', 'شمس الدين', 'سيف الدين', 'زين الدين', 'جمال الدين',
        'كمال الدين', 'صلاح الدين', 'علاء الدين', 'تقي الدين', 'نجم الدين',
        # kunya and nasab forms
        'ابو بكر', 'ابو طالب', 'ابو هريرة',
        'ام كلثوم', 'ام سلمة', 'ام حبيبة',
        'ابن تيمية', 'ابن سينا', 'ابن خلدون', 'ابن رشد',
        'بنت الشاطئ',
    ]

    # Positional rules over two adjacent tokens
    PREFIX_WORDS = ('عبد', 'امه', 'ابو', 'ام', 'ابن', 'بنت')
    SUFFIX_WORDS = ('الدين', 'الله')

    # Words typed in place of a name while a case is under review
    PLACEHOLDER_WORDS = ('تحت', 'التحقيق', 'التحقق', 'مراجعة', 'قيد', 'موقوف', 'غير', 'مكتمل')

    def __init__(self):
        """Compile translation tables and compound patterns."""
        self._letters = str.maketrans({**self.LETTER_MAP, **self.DIGIT_MAP})
        self._non_arabic_run = re.compile(r'[^؀-ۿ\s]+')
        self._disallowed = re.compile(r'[^ء-غف-يa-z0-9\s]')
        self._prefix_rule = re.compile(
            r'^(?:' + '|'.join(self.PREFIX_WORDS) + r')\s+[ء-ي]{3,}$'
        )
        self._suffix_rule = re.compile(
            r'^[ء-ي]{3,}\s+(?:' + '|'.join(self.SUFFIX_WORDS) + r')$'
        )
        self._compounds = {
            tuple(self.normalize(name).split()) for name in self.COMPOUND_NAMES
        }
        self._placeholders = frozenset(self.normalize(word) for word in self.PLACEHOLDER_WORDS)

    def normalize(self, raw: Any) -> str:
        """
        Normalize a raw name to its canonical form.

        Args:
            raw: Cell value (str, number, None or NaN)

        Returns:
            Canonical name; empty string for missing input
        """
        text = coerce_text(raw)
        if not text:
            return ''

        # Step 1: Compatibility form
        text = unicodedata.normalize('NFKC', text)

        # Step 2: Drop combining marks (harakat, shadda) and zero-width format chars
        text = ''.join(ch for ch in text if unicodedata.category(ch) not in ('Mn', 'Cf'))

        # Step 3: Unify letter variants and digits
        text = text.translate(self._letters)

        # Step 4: Transliterate non-Arabic runs, lower-case Latin
        text = self._non_arabic_run.sub(lambda m: unidecode(m.group(0)), text)
        text = text.lower()

        # Step 5: Strip punctuation outside Arabic letters, Latin and digits
        text = self._disallowed.sub(' ', text)

        # Step 6: Collapse whitespace and apply token variants
        return ' '.join(self.TOKEN_VARIANTS.get(tok, tok) for tok in text.split())

    def split_lineage(self, canonical: str) -> list[str]:
        """
        Split a canonical name into lineage tokens, fusing compound names.

        Dictionary compounds are fused first, then the positional rules
        (عبد/امه/ابو/ام/ابن/بنت + name, name + الدين/الله) run over the
        result, so a fused token never counts as two lineage positions.

        Args:
            canonical: Output of normalize()

        Returns:
            Ordered token list (first, father, grandfather, ..., family)
        """
        if not canonical:
            return []

        tokens = self._fuse(canonical.split(), lambda a, b: (a, b) in self._compounds)
        return self._fuse(
            tokens,
            lambda a, b: bool(
                self._prefix_rule.match(f'{a} {b}') or self._suffix_rule.match(f'{a} {b}')
            ),
        )

    @staticmethod
    def _fuse(tokens: list[str], joins) -> list[str]:
        fused = []
        i = 0
        while i < len(tokens):
            if i + 1 < len(tokens) and joins(tokens[i], tokens[i + 1]):
                fused.append(tokens[i] + tokens[i + 1])
                i += 2
            else:
                fused.append(tokens[i])
                i += 1
        return fused

    def parse(self, raw: Any) -> NormalizedName:
        """Normalize and split in one call."""
        original = coerce_text(raw)
        normalized = self.normalize(original)
        tokens = self.split_lineage(normalized)
        return NormalizedName(
            original=original,
            normalized=normalized,
            tokens=tokens,
            first_token=tokens[0] if tokens else '',
        )

    def has_placeholder(self, tokens) -> bool:
        """True if any normalized token is an administrative placeholder word."""
        return any(token in self._placeholders for token in tokens)

    def phone_digits(self, raw: Any, keep: int = 6) -> str:
        """
        Trailing digits of a phone number.

        Args:
            raw: Phone cell value
            keep: Number of trailing digits to keep

        Returns:
            Last `keep` digits (fewer if the number is shorter)
        """
        digits = re.sub(r'[^0-9]', '', coerce_text(raw).translate(self._letters))
        return digits[-keep:]

    def identifier(self, raw: Any) -> str:
        """National id or code with digits unified and whitespace removed."""
        text = coerce_text(raw).translate(self._letters)
        return re.sub(r'\s+', '', text).upper()

    def children_tokens(self, raw: Any) -> frozenset[str]:
        """
        Normalize a children field into a set of child names.

        Accepts a list of names or a single string delimited by
        comma, Arabic comma, semicolon, pipe or newline.
        """
        if isinstance(raw, (list, tuple, set, frozenset)):
            items = list(raw)
        else:
            items = re.split(r'[,،;|\n]+', coerce_text(raw))

        names = (self.normalize(item) for item in items)
        return frozenset(name for name in names if name)


_default = ArabicNormalizer()


# Module-level convenience functions
def normalize(raw: Any) -> str:
    """Canonical form of a name."""
    return _default.normalize(raw)


def split_lineage(canonical: str) -> list[str]:
    """Lineage tokens of a canonical name."""
    return _default.split_lineage(canonical)


def normalize_name(raw: Any) -> NormalizedName:
    """Parse a raw name into a NormalizedName."""
    return _default.parse(raw)


def phone_digits(raw: Any) -> str:
    """Last 6 digits of a phone number."""
    return _default.phone_digits(raw)


def children_tokens(raw: Any) -> frozenset[str]:
    """Set of normalized child names."""
    return _default.children_tokens(raw)


def has_placeholder(tokens) -> bool:
    """Whether a token list carries a placeholder word."""
    return _default.has_placeholder(tokens)
