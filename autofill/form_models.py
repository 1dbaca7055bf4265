"""
Data models shared by the extractor, matcher and fill executor.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Any, Dict, List, Optional

_NON_WORD = re.compile(r"[\W_]+")


def normalize_text(text: str) -> str:
    """Lower-case text and collapse every run of punctuation/whitespace to one space."""
    if not text:
        return ""
    return _NON_WORD.sub(" ", text.lower()).strip()


class FieldKind(str, Enum):
    """Kinds of fillable elements."""
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    DATE = "date"
    SINGLE_SELECT = "single_select"
    RADIO_GROUP = "radio_group"
    CHECKBOX = "checkbox"


@dataclass
class FieldOption:
    """One choice of a select or radio group.

    ``index`` is the position in the select's full ``options`` collection,
    which still counts disabled entries left out of the option list.
    """
    value: str
    text: str
    handle: Optional[Any] = field(default=None, repr=False)  # radio member element
    index: Optional[int] = None

    def dom_index(self, position: int) -> int:
        return self.index if self.index is not None else position


@dataclass
class FieldDescriptor:
    """A candidate input on the page, valid for a single detection pass.

    ``handle`` is a borrowed Playwright element handle. It is disposed when the
    invocation that produced the descriptor finishes and must not be kept.
    """
    handle: Any = field(repr=False)
    kind: FieldKind
    input_type: str
    raw_attributes: Dict[str, str]
    label_candidates: List[str]
    options: List[FieldOption] = field(default_factory=list)
    order: int = 0
    cache_key: str = ""

    @cached_property
    def search_text(self) -> str:
        parts = [v for v in self.raw_attributes.values() if v]
        parts.extend(self.label_candidates)
        return normalize_text(" ".join(parts))

    @property
    def display_name(self) -> str:
        """Short human-readable name for logs and summaries."""
        if self.label_candidates:
            label = self.label_candidates[0]
            return label if len(label) <= 60 else label[:57] + "..."
        for key in ("aria-label", "placeholder", "name", "id"):
            if self.raw_attributes.get(key):
                return self.raw_attributes[key]
        return f"field_{self.order}"

    @property
    def handles(self) -> List[Any]:
        """All element handles held by this descriptor."""
        handles = [self.handle] if self.handle is not None else []
        handles.extend(opt.handle for opt in self.options if opt.handle is not None)
        return handles


class MatchStrategy(str, Enum):
    """Match strategies in priority order."""
    EXACT_KEYWORD = "exact_keyword"
    PARTIAL_WORD = "partial_word"
    CUSTOM_FIELD = "custom_field"
    POSITIONAL = "positional"
    ELEMENT_KIND = "element_kind"


@dataclass
class MatchResult:
    """Best profile binding found for one field."""
    field: FieldDescriptor
    data_key: str
    value: str
    confidence: float
    strategy: MatchStrategy
    matched_keywords: List[str] = field(default_factory=list)


@dataclass
class FillOutcome:
    """Result of writing one match to the page."""
    match: MatchResult
    filled: bool
    final_value: str
    attempts: int = 0
    error: Optional[str] = None
