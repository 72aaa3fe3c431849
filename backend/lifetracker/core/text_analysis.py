"""Heuristic text analysis used when no text analytics service is configured.

All functions are pure: same input always produces same output, no side effects.
"""

import re


POSITIVE_WORDS = ("happy", "good", "great", "excellent", "wonderful", "amazing", "love", "enjoy")
NEGATIVE_WORDS = ("sad", "bad", "terrible", "awful", "horrible", "hate", "dislike", "disappointed")

NEUTRAL_SCORE = 0.5
MAX_KEY_PHRASES = 10


def clamp_score(score: float) -> float:
    """Clamp a sentiment score into [0, 1]."""
    return min(max(score, 0.0), 1.0)


def _count_words(text: str, words: tuple[str, ...]) -> int:
    return sum(len(re.findall(rf"\b{word}\b", text)) for word in words)


def keyword_sentiment(text: str) -> float:
    """Score text from 0 (negative) to 1 (positive) by keyword hits.

    The score is positive hits over all hits; 0.5 when nothing matches.
    """
    lowered = text.lower()
    positive = _count_words(lowered, POSITIVE_WORDS)
    negative = _count_words(lowered, NEGATIVE_WORDS)

    if positive == 0 and negative == 0:
        return NEUTRAL_SCORE
    return positive / (positive + negative)


def heuristic_key_phrases(text: str) -> list[str]:
    """Pick candidate key phrases from text.

    Short text (under 20 characters) is returned whole. Otherwise long or
    capitalized words and adjacent word pairs are collected per sentence,
    deduplicated in order of appearance, and capped at 10.
    """
    if len(text) < 20:
        return [text.strip()]

    sentences = re.findall(r"[^.!?]+[.!?]+", text) or [text]
    phrases: list[str] = []

    for sentence in sentences:
        words = [re.sub(r"[^\w\s]", "", word) for word in sentence.split()]
        words = [w for w in words if w]
        for i, word in enumerate(words):
            if len(word) > 5 or word[0].isupper():
                phrases.append(word)
            if i < len(words) - 1:
                phrases.append(f"{word} {words[i + 1]}")

    return list(dict.fromkeys(phrases))[:MAX_KEY_PHRASES]
