"""Journal Insights - Pure functions over journal entries.

Keyword-frequency heuristics only; no NLP model is involved.
"""

import math
from collections import Counter, defaultdict

from .models import (
    DaySentiment,
    EmotionFrequency,
    JournalEntry,
    MoodInsights,
    SentimentTrends,
    TopicAnalysis,
    TopicFrequency,
    TopicSentiment,
    ensure_utc,
)


EMOTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "joy": ("happy", "happiness", "joy", "excited", "thrilled", "delighted", "pleased", "glad"),
    "sadness": ("sad", "sadness", "unhappy", "depressed", "miserable", "melancholy", "blue", "down"),
    "anger": ("angry", "anger", "mad", "furious", "irritated", "annoyed", "frustrated", "rage"),
    "fear": ("afraid", "fear", "scared", "anxious", "worried", "nervous", "terrified", "panic"),
    "surprise": ("surprised", "surprise", "amazed", "astonished", "shocked", "startled"),
    "love": ("love", "loved", "adore", "cherish", "affection", "caring", "fond"),
    "gratitude": ("grateful", "thankful", "appreciate", "gratitude", "blessed", "fortunate"),
    "calm": ("calm", "peaceful", "relaxed", "serene", "tranquil", "content", "ease"),
}

TOP_EMOTIONS = 5
TOP_TOPICS = 10
POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.4

NO_DATA_SUMMARY = "Not enough data to generate insights."
NO_DATA_RECOMMENDATION = "Start journaling regularly to receive personalized insights."


def average_sentiment(entries: list[JournalEntry]) -> float:
    if not entries:
        return 0.0
    return sum(e.sentiment_score for e in entries) / len(entries)


def sentiment_by_day(entries: list[JournalEntry]) -> list[DaySentiment]:
    """Average sentiment per UTC day, oldest day first."""
    by_day: dict[str, list[float]] = defaultdict(list)
    for entry in entries:
        by_day[ensure_utc(entry.date).date().isoformat()].append(entry.sentiment_score)

    return [
        DaySentiment(date=day, sentiment=sum(scores) / len(scores))
        for day, scores in sorted(by_day.items())
    ]


def top_emotions(entries: list[JournalEntry], limit: int = TOP_EMOTIONS) -> list[EmotionFrequency]:
    """Most frequent emotion families; each counts at most once per entry."""
    counts: Counter[str] = Counter()
    for entry in entries:
        content = entry.content.lower()
        for emotion, keywords in EMOTION_KEYWORDS.items():
            if any(keyword in content for keyword in keywords):
                counts[emotion] += 1

    return [EmotionFrequency(emotion=e, frequency=n) for e, n in counts.most_common(limit)]


def sentiment_trends(entries: list[JournalEntry]) -> SentimentTrends:
    """Average, per-day trend and top emotions. Empty shape for no entries."""
    if not entries:
        return SentimentTrends(average_sentiment=0, trend_by_day=[], top_emotions=[])

    return SentimentTrends(
        average_sentiment=average_sentiment(entries),
        trend_by_day=sentiment_by_day(entries),
        top_emotions=top_emotions(entries),
    )


def rank_topics(phrases: list[str], limit: int = TOP_TOPICS) -> list[TopicFrequency]:
    return [TopicFrequency(topic=t, frequency=n) for t, n in Counter(phrases).most_common(limit)]


def tag_topics(entries: list[JournalEntry], limit: int = TOP_TOPICS) -> list[TopicFrequency]:
    """Topic ranking from tags, used when key phrases are unavailable."""
    return rank_topics([tag for entry in entries for tag in entry.tags], limit)


def topic_sentiments(entries: list[JournalEntry]) -> list[TopicSentiment]:
    """Average sentiment per tag, most positive first."""
    scores: dict[str, list[float]] = defaultdict(list)
    for entry in entries:
        for tag in entry.tags:
            scores[tag].append(entry.sentiment_score)

    result = [TopicSentiment(topic=tag, sentiment=sum(s) / len(s)) for tag, s in scores.items()]
    return sorted(result, key=lambda t: t.sentiment, reverse=True)


def topic_analysis(entries: list[JournalEntry], key_phrases: list[str] | None) -> TopicAnalysis:
    """Combine key-phrase topics (or tag topics as fallback) with tag sentiment.

    Args:
        entries: Entries in the analysed range
        key_phrases: All key phrases extracted from the entries, or None when
            extraction is unavailable

    Returns:
        TopicAnalysis; empty lists when there are no entries
    """
    if not entries:
        return TopicAnalysis(top_topics=[], topic_sentiment=[])

    topics = rank_topics(key_phrases) if key_phrases is not None else tag_topics(entries)
    return TopicAnalysis(top_topics=topics, topic_sentiment=topic_sentiments(entries))


def describe_trend(entries: list[JournalEntry]) -> str:
    """One sentence comparing the older half of entries with the newer half."""
    if len(entries) < 3:
        return "There's not enough data to identify a clear trend."

    ordered = sorted(entries, key=lambda e: ensure_utc(e.date))
    middle = len(ordered) // 2
    difference = average_sentiment(ordered[middle:]) - average_sentiment(ordered[:middle])

    if difference >= 0.2:
        return "Your mood has been improving significantly."
    if difference >= 0.05:
        return "Your mood has been gradually improving."
    if difference <= -0.2:
        return "Your mood has been declining significantly."
    if difference <= -0.05:
        return "Your mood has been gradually declining."
    return "Your mood has been relatively stable."


def mood_summary(entries: list[JournalEntry]) -> str:
    average = average_sentiment(entries)
    trend = describe_trend(entries)

    if average >= 0.8:
        return f"Your recent journal entries show very positive emotions. {trend} Your overall mood has been excellent."
    if average >= 0.6:
        return f"Your recent journal entries reflect positive emotions. {trend} You've been in good spirits overall."
    if average >= 0.4:
        return f"Your recent journal entries show balanced emotions. {trend} Your mood has been generally neutral."
    if average >= 0.2:
        return (
            f"Your recent journal entries indicate some challenging emotions. {trend} "
            "You may be going through a difficult time."
        )
    return (
        f"Your recent journal entries reflect primarily negative emotions. {trend} "
        "You may want to reach out for support."
    )


def recommendations(entries: list[JournalEntry]) -> list[str]:
    average = average_sentiment(entries)
    result = ["Continue journaling regularly to track your emotional patterns."]

    if average < 0.4:
        result += [
            "Consider activities that have previously improved your mood.",
            "Try incorporating more positive reflections in your journaling practice.",
            "Look for supportive resources if you're feeling consistently low.",
        ]
    elif average < 0.6:
        result += [
            "Try to identify what factors contribute to your more positive entries.",
            "Consider setting aside time for activities that bring you joy.",
        ]
    else:
        result += [
            "Reflect on what's contributing to your positive outlook.",
            "Consider sharing your positive practices with others who might benefit.",
        ]
    return result


def common_tags(entries: list[JournalEntry]) -> list[str]:
    """Tags present in at least max(2, 25%) of the given entries."""
    if not entries:
        return []

    counts = Counter(tag for entry in entries for tag in entry.tags)
    min_count = max(2, math.ceil(len(entries) * 0.25))
    return [tag for tag, count in counts.items() if count >= min_count]


def identify_patterns(entries: list[JournalEntry]) -> tuple[list[str], list[str]]:
    """Positive patterns and improvement areas derived from tags."""
    positive = [e for e in entries if e.sentiment_score >= POSITIVE_THRESHOLD]
    negative = [e for e in entries if e.sentiment_score <= NEGATIVE_THRESHOLD]

    positive_patterns = [
        f'Journal entries about "{tag}" are associated with positive emotions.'
        for tag in common_tags(positive)
    ]
    improvement_areas = [
        f'Journal entries about "{tag}" tend to have lower sentiment scores.'
        for tag in common_tags(negative)
    ]

    if not positive_patterns and positive:
        positive_patterns.append("You generally express positive emotions in your journal entries.")
    if not improvement_areas and negative:
        improvement_areas.append("Consider exploring the factors behind your less positive journal entries.")

    return positive_patterns, improvement_areas


def mood_insights(entries: list[JournalEntry]) -> MoodInsights:
    """Summary, recommendations and tag patterns for recent entries."""
    if not entries:
        return MoodInsights(
            mood_summary=NO_DATA_SUMMARY,
            recommendations=[NO_DATA_RECOMMENDATION],
            positive_patterns=[],
            improvement_areas=[],
        )

    positive_patterns, improvement_areas = identify_patterns(entries)
    return MoodInsights(
        mood_summary=mood_summary(entries),
        recommendations=recommendations(entries),
        positive_patterns=positive_patterns,
        improvement_areas=improvement_areas,
    )
