"""
Form builder detector module.

Hosted form builders wrap each question in a container whose heading carries the
question text, which is often the only label a field has.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class FormBuilder(Enum):
    """Known hosted form builders."""
    GOOGLE_FORMS = "google_forms"
    MICROSOFT_FORMS = "microsoft_forms"
    TYPEFORM = "typeform"
    JOTFORM = "jotform"
    GENERIC = "generic"


@dataclass
class FormBuilderDetection:
    """Result of form builder detection."""
    builder: FormBuilder
    confidence: float  # 0.0 to 1.0
    detection_method: str  # "url", "dom" or "none"


@dataclass(frozen=True)
class QuestionSelectors:
    """Selectors used to read question text around a field."""
    containers: List[str]
    headings: List[str]
    descriptions: List[str]


# URL patterns for form builder detection
URL_PATTERNS = {
    FormBuilder.GOOGLE_FORMS: [
        r"docs\.google\.com/forms",
        r"forms\.gle/",
    ],
    FormBuilder.MICROSOFT_FORMS: [
        r"forms\.office\.com",
        r"forms\.microsoft\.com",
    ],
    FormBuilder.TYPEFORM: [
        r"[^.]+\.typeform\.com/to/",
        r"form\.typeform\.com",
    ],
    FormBuilder.JOTFORM: [
        r"form\.jotform\.com",
        r"jotform\.com/\d+",
    ],
}

# DOM markers for fallback detection
DOM_MARKERS = {
    FormBuilder.GOOGLE_FORMS: [
        "freebirdformviewer",
        "docs-forms",
        'jsmodel="',
    ],
    FormBuilder.MICROSOFT_FORMS: [
        "office-form-question",
        "data-automation-id=\"questionitem\"",
    ],
    FormBuilder.TYPEFORM: [
        "typeform-",
        "tf-v1-",
    ],
    FormBuilder.JOTFORM: [
        "jotform-form",
        "form-line",
    ],
}

GENERIC_SELECTORS = QuestionSelectors(
    containers=['[role="listitem"]', "[data-params]", "fieldset", ".form-group"],
    headings=['[role="heading"]', "legend", "h1", "h2", "h3", "h4", "label"],
    descriptions=[".help-text", ".description", "small"],
)

QUESTION_SELECTORS: Dict[FormBuilder, QuestionSelectors] = {
    FormBuilder.GOOGLE_FORMS: QuestionSelectors(
        containers=[
            '[role="listitem"]',
            ".freebirdFormviewerViewItemsItemItem",
            "[data-params]",
        ],
        headings=[
            '[role="heading"]',
            ".freebirdFormviewerViewItemsItemItemTitle",
            ".Xb9hP",
            ".M7eMe",
            "span[jsslot]",
        ],
        descriptions=[
            ".freebirdFormviewerViewItemsItemItemHelpText",
            ".freebirdFormviewerViewItemsItemItemDescription",
            ".exportItemDescription",
        ],
    ),
    FormBuilder.MICROSOFT_FORMS: QuestionSelectors(
        containers=['[data-automation-id="questionItem"]', ".office-form-question"],
        headings=['[data-automation-id="questionTitle"]', ".office-form-question-title"],
        descriptions=[".office-form-question-subtitle"],
    ),
    FormBuilder.TYPEFORM: QuestionSelectors(
        containers=['[data-qa="question-wrapper"]', '[role="group"]'],
        headings=['[data-qa="question-title"]', "h1", "h2"],
        descriptions=['[data-qa="question-description"]'],
    ),
    FormBuilder.JOTFORM: QuestionSelectors(
        containers=[".form-line", "li[data-type]"],
        headings=[".form-label", "label"],
        descriptions=[".form-sub-label", ".form-description"],
    ),
}


def detect_from_url(url: str) -> Optional[FormBuilderDetection]:
    """Detect form builder from URL patterns."""
    url_lower = url.lower()

    for builder, patterns in URL_PATTERNS.items():
        for pattern in patterns:
            if re.search(pattern, url_lower):
                return FormBuilderDetection(builder=builder, confidence=0.95, detection_method="url")
    return None


def detect_from_dom(html_content: str) -> Optional[FormBuilderDetection]:
    """Detect form builder from DOM markers."""
    html_lower = html_content.lower()

    for builder, markers in DOM_MARKERS.items():
        if any(marker.lower() in html_lower for marker in markers):
            return FormBuilderDetection(builder=builder, confidence=0.75, detection_method="dom")
    return None


def detect_form_builder(url: str, html: Optional[str] = None) -> FormBuilderDetection:
    """Detect the hosted form builder serving a page.

    Args:
        url: The page URL
        html: Optional HTML content for DOM-based detection

    Returns:
        FormBuilderDetection with the detected builder and confidence
    """
    url_result = detect_from_url(url or "")
    if url_result:
        return url_result

    if html:
        dom_result = detect_from_dom(html)
        if dom_result:
            return dom_result

    return FormBuilderDetection(builder=FormBuilder.GENERIC, confidence=0.0, detection_method="none")


def question_selectors(builder: FormBuilder) -> QuestionSelectors:
    """Selectors for question containers, headings and descriptions."""
    return QUESTION_SELECTORS.get(builder, GENERIC_SELECTORS)
