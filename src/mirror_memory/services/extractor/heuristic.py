"""Regex-based text extractor (no model calls)."""
import re
from logging import Logger
from typing import Iterable, Optional

from scitrera_app_framework import Variables

from .base import TextExtractor, TextExtractorPluginBase

# One or two capitalized words
_NAME = r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"

_NAME_PATTERNS = (
    re.compile(r"about\s+" + _NAME),
    re.compile(_NAME + r"['\u2019]s\b"),
    re.compile(r"with\s+" + _NAME),
    re.compile(r"(?i:\b(?:ask|tell|called|meet|meeting|from|to))\s+" + _NAME),
    re.compile(r"(?:[,;]\s*|\s(?:and|or|but)\s)" + _NAME),
    # Leading token of a sentence
    re.compile(r"(?:^|[.!?]\s+)" + _NAME),
)

COMMON_WORDS = frozenset({
    # Pronouns and determiners
    "I", "Me", "My", "Mine", "You", "Your", "He", "She", "It", "Its", "We", "Our", "They", "Their", "Them",
    "The", "This", "That", "These", "Those", "A", "An", "Some", "Any", "All", "Every", "Each", "No", "Not",
    # Interrogatives
    "What", "When", "Where", "Why", "How", "Who", "Whom", "Which", "Whose",
    # Modals and auxiliaries
    "Should", "Can", "Could", "Would", "Will", "Shall", "May", "Might", "Must", "Do", "Does", "Did",
    "Is", "Are", "Was", "Were", "Am", "Be", "Been", "Have", "Has", "Had",
    # Conjunctions, adverbs and fillers that open sentences
    "And", "Or", "But", "So", "If", "Then", "Also", "Just", "Maybe", "Perhaps", "Yes", "Yeah", "Ok", "Okay",
    "Hi", "Hello", "Hey", "Thanks", "Please", "Well", "Now", "Today", "Tomorrow", "Yesterday", "There", "Here",
    "Actually", "Really", "Still", "Lately", "Recently", "Sometimes", "Honestly",
    # Sentence-opening verbs
    "Tell", "Help", "Remind", "Let", "Lets", "Give", "Show", "Find", "Explain", "Research", "Analyze",
    "Thinking", "Feeling", "Trying", "Going", "Need", "Want", "Think", "Remember", "Talk", "Talking",
    "Meeting", "Called", "Ask", "Meet", "From", "To", "About", "With",
    # Weekdays and months
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    "January", "February", "March", "April", "June", "July", "August", "September", "October",
    "November", "December",
})

STOP_WORDS = frozenset({
    'i', 'me', 'my', 'myself', 'we', 'our', 'you', 'your', 'he', 'she', 'it',
    'the', 'a', 'an', 'and', 'or', 'but', 'if', 'then', 'so', 'as', 'of', 'at',
    'by', 'for', 'with', 'about', 'to', 'from', 'in', 'on', 'is', 'are', 'was',
    'were', 'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'can', 'may', 'might', 'must',
    'what', 'when', 'where', 'why', 'how', 'which', 'who', 'whom',
    'this', 'that', 'these', 'those', 'am', 'im', "i'm", 'think', 'know',
    'tell', 'help', 'please', 'want', 'need', 'like', 'just', 'really',
    'very', 'much', 'more', 'most', 'some', 'any', 'all', 'both', 'each',
    'few', 'many', 'such', 'no', 'nor', 'not', 'only', 'own', 'same', 'than',
    'too', 'also', 'now', 'here', 'there', 'new', 'old',
    'high', 'low', 'good', 'bad', 'great', 'small', 'large', 'long', 'short',
    'young', 'first', 'last', 'next', 'other', 'into', 'through', 'during',
    'before', 'after', 'above', 'below', 'between', 'under', 'again', 'further',
    'once', 'always', 'never', 'ever', 'still', 'already', 'even', 'way',
})


def _clean_name(candidate: str) -> Optional[str]:
    """Drop common leading words ("Should Marcus" -> "Marcus"); None when nothing name-like remains."""
    words = candidate.split()
    while words and words[0] in COMMON_WORDS:
        words.pop(0)
    if not words or (len(words) == 1 and words[0] in COMMON_WORDS):
        return None
    return " ".join(words)


class HeuristicTextExtractor(TextExtractor):
    """
    Regex/keyword extractor.

    Names are capitalized words in typical mention positions ("about X", "X's", "with X",
    "ask X", after commas and conjunctions, or leading a sentence). Known names supplied by
    the caller are matched whole-word regardless of case.
    """

    def extract_mentioned_entities(self, message: str, known_names: Optional[Iterable[str]] = None) -> list[str]:
        if not message or not isinstance(message, str):
            return []

        found: list[str] = []
        seen: set[str] = set()

        def add(name: Optional[str]) -> None:
            if name and name.lower() not in seen:
                seen.add(name.lower())
                found.append(name)

        for pattern in _NAME_PATTERNS:
            for match in pattern.finditer(message):
                add(_clean_name(match.group(1)))

        for known in known_names or ():
            if not isinstance(known, str) or not known.strip():
                continue
            if re.search(r"\b" + re.escape(known.strip()) + r"\b", message, re.IGNORECASE):
                add(known.strip())

        return found

    def extract_topics(self, message: str) -> list[str]:
        if not message or not isinstance(message, str):
            return []

        words = re.sub(r"[^\w\s]", " ", message.lower()).split()
        topics: list[str] = []
        for word in words:
            if len(word) > 2 and word not in STOP_WORDS and word not in topics:
                topics.append(word)
        return topics


class HeuristicTextExtractorPlugin(TextExtractorPluginBase):
    """Heuristic text extractor plugin."""
    PROVIDER_NAME = 'heuristic'

    def initialize(self, v: Variables, logger: Logger) -> TextExtractor:
        return HeuristicTextExtractor(v=v)
