"""Review text rule families.

Each family is one row of an ordered table: (name, flag, points, predicate).
A family fires at most once per evaluation: its predicate stops at the first
pattern that matches, so a review with three URLs still scores spam once.

Families:
- spam:               repeated chars, URLs, spam tokens, ALL CAPS runs, explicit tokens
- low_quality:        very short, short repeated tokens, one stock word
- suspicious:         calls to action, contact solicitation, messaging apps, promo
- fake_positive:      superlatives on a maximum rating
- copy_paste:         template / boilerplate markers
- sentiment_mismatch: lexical sentiment disagrees with the numeric rating
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

MAX_RATING = 5
MIN_RATING = 1

_I = re.IGNORECASE

SPAM_PATTERNS = (
    re.compile(r"(.)\1{4,}", _I),                              # aaaaa, !!!!!
    re.compile(r"https?://|www\.[a-z0-9-]+\.[a-z]{2,}", _I),
    re.compile(r"\b(spam|fake|test|asdf|qwerty)\b", _I),
    re.compile(r"[A-Z]{10,}"),                                # case sensitive on purpose
    re.compile(r"\b(porn|xxx|nudes? for sale|sex chat)\b", _I),
)

LOW_QUALITY_PATTERNS = (
    re.compile(r"\A.{1,15}\Z", re.DOTALL),
    re.compile(r"\A(?:\S{1,3}\s+){4,}\S{1,3}\s*\Z"),
    re.compile(r"\A\s*(ok|okay|good|nice|great|bad|cool|wow|top|fine|yes|no|bello|bella|buono|bravo|brava|ottimo|si)[\s.!]*\Z", _I),
)

SUSPICIOUS_PATTERNS = (
    re.compile(r"compra ora|buy now|click here|clicca qui", _I),
    re.compile(r"guadagna soldi|make money|earn money|soldi facili", _I),
    re.compile(r"contattami su|contact me (on|at)|dm me|message me on|scrivimi su", _I),
    re.compile(r"\b(telegram|whatsapp|snapchat|kik)\b", _I),
    re.compile(r"check (out )?my (profile|page|channel|link)|follow me|seguimi|visit my (page|profile)", _I),
    re.compile(r"promo ?code|coupon|discount code|codice sconto|\b\d{1,2} ?% off\b", _I),
)

FAKE_POSITIVE_PATTERNS = (
    re.compile(r"\b(the )?best (creator|ever|of all time)\b", _I),
    re.compile(r"\b100 ?% (recommended|legit|worth it)\b", _I),
    re.compile(r"absolutely perfect|perfect in every way|nothing (bad|negative) to say", _I),
    re.compile(r"miglior[ea]? di sempre|la migliore in assoluto|il migliore in assoluto", _I),
    re.compile(r"\b(amazing|incredible|perfect|wow)!{3,}", _I),
)

COPY_PASTE_PATTERNS = (
    re.compile(r"lorem ipsum", _I),
    re.compile(r"\[(creator|name|nome|insert|placeholder)[^\]]*\]", _I),
    re.compile(r"\{\{[^}]*\}\}"),
    re.compile(r"<(creator|name)>", _I),
    re.compile(r"insert (the )?(name|text|creator) here", _I),
    re.compile(r"as an ai( language model)?", _I),
)

POSITIVE_MARKERS = (
    "good", "great", "excellent", "amazing", "awesome", "love", "loved", "recommend",
    "recommended", "worth", "fantastic", "perfect", "friendly", "responsive", "happy",
    "satisfied", "enjoyed", "quality", "ottimo", "ottima", "consiglio", "fantastico",
    "perfetto", "perfetta", "soddisfatto", "bellissimo", "gentile",
)

NEGATIVE_MARKERS = (
    "bad", "terrible", "awful", "horrible", "scam", "waste", "disappointing", "disappointed",
    "poor", "rude", "worst", "avoid", "boring", "overpriced", "useless", "ignored", "refund",
    "truffa", "pessimo", "pessima", "deludente", "evitate", "schifo", "delusione",
)

_POSITIVE_RE = re.compile(r"\b(" + "|".join(POSITIVE_MARKERS) + r")\b", _I)
_NEGATIVE_RE = re.compile(r"\b(" + "|".join(NEGATIVE_MARKERS) + r")\b", _I)

# (title, content, rating) -> bool
Predicate = Callable[[str, str, int], bool]


@dataclass(frozen=True)
class RuleFamily:
    name: str
    flag: str
    points: int
    test: Predicate


def _first_match(patterns: Sequence[re.Pattern], texts: Iterable[str]) -> bool:
    texts = [t for t in texts if t]
    for pattern in patterns:
        for text in texts:
            if pattern.search(text):
                return True
    return False


def _in_content(patterns: Sequence[re.Pattern]) -> Predicate:
    return lambda title, content, rating: _first_match(patterns, (content,))


def _in_title_or_content(patterns: Sequence[re.Pattern]) -> Predicate:
    return lambda title, content, rating: _first_match(patterns, (content, title))


def sentiment_counts(text: str) -> tuple[int, int]:
    if not text:
        return 0, 0
    return len(_POSITIVE_RE.findall(text)), len(_NEGATIVE_RE.findall(text))


def sentiment_mismatch(text: str, rating: int) -> bool:
    positive, negative = sentiment_counts(text)
    if rating >= 4 and negative > positive:
        return True
    if rating <= 2 and positive > negative:
        return True
    return False


def _fake_positive(title: str, content: str, rating: int) -> bool:
    if rating != MAX_RATING:
        return False
    return _first_match(FAKE_POSITIVE_PATTERNS, (content, title))


SPAM = RuleFamily("spam", "spam_pattern", 25, _in_title_or_content(SPAM_PATTERNS))
LOW_QUALITY = RuleFamily("low_quality", "low_quality_content", 20, _in_content(LOW_QUALITY_PATTERNS))
SUSPICIOUS = RuleFamily("suspicious", "suspicious_content", 35, _in_content(SUSPICIOUS_PATTERNS))
FAKE_POSITIVE = RuleFamily("fake_positive", "fake_positive", 15, _fake_positive)
COPY_PASTE = RuleFamily("copy_paste", "copy_paste_template", 40, _in_title_or_content(COPY_PASTE_PATTERNS))
SENTIMENT_MISMATCH = RuleFamily(
    "sentiment_mismatch", "sentiment_mismatch", 15,
    lambda title, content, rating: sentiment_mismatch(f"{title or ''} {content or ''}", rating),
)

# Priority order for the content step of the review check
CONTENT_FAMILIES: tuple[RuleFamily, ...] = (SPAM, LOW_QUALITY, SUSPICIOUS, FAKE_POSITIVE, COPY_PASTE)


def evaluate_families(
    families: Iterable[RuleFamily], title: str, content: str, rating: int
) -> list[tuple[int, str]]:
    """Return (points, flag) for every family that fires, in table order."""
    hits = []
    for family in families:
        if family.test(title or "", content or "", rating):
            hits.append((family.points, family.flag))
    return hits
