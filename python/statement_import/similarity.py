"""
String Similarity Helpers

Word-level similarity used by the vendor normalizer and auto-categorizer.
"""

from rapidfuzz.distance import Levenshtein


def edit_similarity(word1: str, word2: str) -> float:
    """Edit distance normalized by the longer word: ``1 - distance / maxLen``."""
    if word1 == word2:
        return 1.0
    if not word1 or not word2:
        return 0.0

    max_length = max(len(word1), len(word2))
    return max(0.0, 1 - Levenshtein.distance(word1, word2) / max_length)


def token_overlap(text1: str, text2: str, min_length: int = 3) -> float:
    """Fraction of tokens in ``text1`` that have a counterpart in ``text2``.

    Tokens match when identical, or when both are longer than
    ``min_length`` characters and one contains the other. The count is
    divided by the larger token count.
    """
    words1 = text1.split()
    words2 = text2.split()
    if not words1 or not words2:
        return 0.0

    matches = 0
    for word1 in words1:
        for word2 in words2:
            if word1 == word2 or (
                len(word1) > min_length
                and len(word2) > min_length
                and (word1 in word2 or word2 in word1)
            ):
                matches += 1
                break

    return matches / max(len(words1), len(words2))


def fuzzy_word_ratio(text: str, pattern: str, threshold: float) -> float:
    """Fraction of pattern words close to some word of ``text``.

    A pattern word counts when its edit similarity to a text word is above
    ``threshold``.
    """
    text_words = text.split()
    pattern_words = pattern.split()
    if not pattern_words:
        return 0.0

    matching = sum(
        1
        for pattern_word in pattern_words
        if any(edit_similarity(word, pattern_word) > threshold for word in text_words)
    )
    return matching / len(pattern_words)
