"""
MIZAN Phonetic: Arabic Consonant Skeleton Encoding

Soundex-style encoder for normalized Arabic names, used as a blocking
key so that spelling drift still lands records in the same block.
Handles Arabic-specific drift:
- Weak letters (ا و ي) vary with dialect and are dropped
- Emphatic/plain pairs (ت/ط, د/ض, س/ص) collapse to one group
- Leading definite article (ال) is ignored on family names
"""

import re


class ArabicSkeleton:
    """
    Consonant-skeleton encoder for normalized Arabic names.

    Unlike Latin Soundex, the first letter is coded too: initial ع and
    ا are both common spellings of the same name.

    Example:
        >>> encoder = ArabicSkeleton()
        >>> encoder.encode("محمد")
        '8683'
        >>> encoder.encode("محمود")  # weak letters dropped
        '8683'
    """

    # Group 1: Labials - ب ف
    # Group 2: Dental stops - ت ط ث
    # Group 3: Dental voiced - د ذ ض ظ
    # Group 4: Sibilants - س ص ز ش
    # Group 5: Velars/uvulars - ك ق ج غ خ
    # Group 6: Gutturals - ح ه ع
    # Group 7: Lateral - ل
    # Group 8: Nasals - م ن
    # Group 9: Vibrant - ر
    CONSONANT_CODES = {
        'ب': '1', 'ف': '1',
        'ت': '2', 'ط': '2', 'ث': '2',
        'د': '3', 'ذ': '3', 'ض': '3', 'ظ': '3',
        'س': '4', 'ص': '4', 'ز': '4', 'ش': '4',
        'ك': '5', 'ق': '5', 'ج': '5', 'غ': '5', 'خ': '5',
        'ح': '6', 'ه': '6', 'ع': '6',
        'ل': '7',
        'م': '8', 'ن': '8',
        'ر': '9',
    }

    WEAK_LETTERS = set('اوي')

    def __init__(self, code_length: int = 4):
        """
        Initialize encoder.

        Args:
            code_length: Length of output code (default 4)
        """
        self.code_length = code_length

    def encode(self, name: str) -> str:
        """
        Encode one normalized name token.

        Args:
            name: Token already passed through the normalizer

        Returns:
            Skeleton code (e.g., '8183'), empty if nothing codable
        """
        if not name or not isinstance(name, str):
            return ''

        clean = re.sub(r'[^ء-ي]', '', name)
        if len(clean) > 3 and clean.startswith('ال'):
            clean = clean[2:]

        code = []
        prev_code = ''
        for char in clean:
            if char in self.WEAK_LETTERS:
                continue
            char_code = self.CONSONANT_CODES.get(char)
            if char_code and char_code != prev_code:
                code.append(char_code)
            prev_code = char_code or prev_code
            if len(code) >= self.code_length:
                break

        if not code:
            return ''

        while len(code) < self.code_length:
            code.append('0')

        return ''.join(code)

    def encode_tokens(self, tokens: list[str]) -> list[str]:
        """Encode each lineage token separately."""
        return [self.encode(token) for token in tokens if token]
