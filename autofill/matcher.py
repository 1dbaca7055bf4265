"""
Pattern matcher: scores each extracted field against the profile attributes.
"""

import logging
from typing import Dict, List, Optional

from .config import Profile
from .errors import NoMatchesFoundError
from .field_mapping import (
    FIELD_KEYWORDS,
    INPUT_TYPE_FALLBACKS,
    KIND_FALLBACK_CONFIDENCE,
    KIND_FALLBACKS,
    POSITIONAL_FALLBACKS,
    POSITIONAL_FIELD_LIMIT,
)
from .form_models import FieldDescriptor, MatchResult, MatchStrategy, normalize_text

logger = logging.getLogger(__name__)

EXACT_DIVISOR = 5.0
PARTIAL_DIVISOR = 8.0
PARTIAL_CAP = 0.8
PARTIAL_ATTEMPT_BELOW = 0.5
CUSTOM_DIVISOR = 8.0
CUSTOM_EXACT_WEIGHT = 2
MIN_WORD_LENGTH = 3


def _preview(value: str) -> str:
    return value if len(value) <= 30 else value[:30] + "..."


class _Best:
    """Running best candidate for one field."""

    def __init__(self):
        self.score = 0
        self.result: Optional[MatchResult] = None

    def offer(self, score: float, result: MatchResult):
        if score > self.score:
            self.score = score
            self.result = result


class PatternMatcher:
    """Matches field descriptors to profile attributes with a cascade of strategies.

    Strategies, in order: exact keyword, partial word, custom field, positional
    fallback, element-kind fallback. The first three compare raw scores and a
    later strategy only replaces the current best on a strictly higher score.
    The fallbacks apply only while nothing matched.
    """

    def __init__(self, keywords: Optional[Dict[str, List[str]]] = None, min_confidence: float = 0.05):
        source = keywords if keywords is not None else FIELD_KEYWORDS
        self.keywords = {
            key: [kw for kw in (normalize_text(k) for k in words) if kw]
            for key, words in source.items()
        }
        self.min_confidence = min_confidence

    def match(
        self,
        fields: List[FieldDescriptor],
        profile: Profile,
        require_matches: bool = False,
        positional: bool = True,
    ) -> List[MatchResult]:
        """Find the best profile binding for every field.

        Returns results sorted by descending confidence; ties keep page order.
        ``positional=False`` turns off the first-fields fallback, for fields that
        appeared after the page was first scanned.
        """
        data = profile.filled_attributes()
        custom = {k: v for k, v in profile.custom_fields.items() if v and v.strip()}
        results: List[MatchResult] = []

        for index, field in enumerate(fields):
            result = self.match_field(field, index if positional else None, data, custom)
            if result is not None and result.confidence > self.min_confidence:
                logger.debug(
                    "Field %d matched %s via %s (%.2f): %s",
                    index + 1, result.data_key, result.strategy.value,
                    result.confidence, _preview(result.value),
                )
                results.append(result)
            else:
                logger.debug("Field %d NO MATCH: %r", index + 1, field.search_text)

        results.sort(key=lambda r: r.confidence, reverse=True)
        logger.debug("Matching complete: %d matches found", len(results))

        if not results and require_matches:
            raise NoMatchesFoundError(len(fields))
        return results

    def match_field(
        self,
        field: FieldDescriptor,
        index: Optional[int],
        data: Dict[str, str],
        custom: Dict[str, str],
    ) -> Optional[MatchResult]:
        text = field.search_text
        best = _Best()

        self._exact_keywords(field, text, data, best)
        if best.result is None or best.result.confidence < PARTIAL_ATTEMPT_BELOW:
            self._partial_words(field, text, data, best)
        self._custom_fields(field, text, custom, best)

        if best.result is None and index is not None:
            best.result = self._positional(field, index, data)
        if best.result is None:
            best.result = self._element_kind(field, data)
        return best.result

    def _exact_keywords(self, field: FieldDescriptor, text: str, data: Dict[str, str], best: _Best):
        for data_key, keywords in self.keywords.items():
            if data_key not in data:
                continue
            matched = [kw for kw in keywords if kw in text]
            score = sum(len(kw) for kw in matched)
            best.offer(score, MatchResult(
                field=field,
                data_key=data_key,
                value=data[data_key],
                confidence=min(score / EXACT_DIVISOR, 1.0),
                strategy=MatchStrategy.EXACT_KEYWORD,
                matched_keywords=matched,
            ))

    def _partial_words(self, field: FieldDescriptor, text: str, data: Dict[str, str], best: _Best):
        words = text.split()
        for data_key, keywords in self.keywords.items():
            if data_key not in data:
                continue
            for keyword in keywords:
                for word in words:
                    if word in keyword or keyword in word:
                        score = min(len(keyword), len(word))
                        if score < MIN_WORD_LENGTH:
                            continue
                        best.offer(score, MatchResult(
                            field=field,
                            data_key=data_key,
                            value=data[data_key],
                            confidence=min(score / PARTIAL_DIVISOR, PARTIAL_CAP),
                            strategy=MatchStrategy.PARTIAL_WORD,
                            matched_keywords=[keyword],
                        ))

    def _custom_fields(self, field: FieldDescriptor, text: str, custom: Dict[str, str], best: _Best):
        words = text.split()
        for custom_key, custom_value in custom.items():
            key = normalize_text(custom_key)
            if not key:
                continue
            if key in text:
                score = len(key) * CUSTOM_EXACT_WEIGHT
            else:
                score = 0
                for word in words:
                    for key_word in key.split():
                        if word in key_word or key_word in word:
                            shorter = min(len(word), len(key_word))
                            if shorter >= MIN_WORD_LENGTH:
                                score += shorter
            best.offer(score, MatchResult(
                field=field,
                data_key=custom_key,
                value=custom_value,
                confidence=min(score / CUSTOM_DIVISOR, 1.0),
                strategy=MatchStrategy.CUSTOM_FIELD,
                matched_keywords=[custom_key],
            ))

    @staticmethod
    def _positional(field: FieldDescriptor, index: int, data: Dict[str, str]) -> Optional[MatchResult]:
        if index >= POSITIONAL_FIELD_LIMIT or index not in POSITIONAL_FALLBACKS:
            return None
        data_key, confidence = POSITIONAL_FALLBACKS[index]
        if data_key not in data:
            return None
        return MatchResult(field, data_key, data[data_key], confidence, MatchStrategy.POSITIONAL)

    @staticmethod
    def _element_kind(field: FieldDescriptor, data: Dict[str, str]) -> Optional[MatchResult]:
        data_key = INPUT_TYPE_FALLBACKS.get(field.input_type) or KIND_FALLBACKS.get(field.kind)
        if not data_key or data_key not in data:
            return None
        return MatchResult(field, data_key, data[data_key], KIND_FALLBACK_CONFIDENCE, MatchStrategy.ELEMENT_KIND)
