"""
Field extractor module for discovering fillable form fields on a page.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from playwright.async_api import ElementHandle, Frame, Page

from .form_builder import FormBuilder, question_selectors
from .form_models import FieldDescriptor, FieldKind, FieldOption

logger = logging.getLogger(__name__)

FIELD_QUERY = "input, textarea, select, [contenteditable='true'][role='textbox']"

IGNORED_INPUT_TYPES = {"hidden", "submit", "button", "reset", "image", "file", "color", "range"}
TEXT_INPUT_TYPES = {"", "text", "email", "tel", "url", "search", "number"}

SIBLING_TEXT_LIMIT = 200
ANCESTOR_TEXT_LIMIT = 100
QUESTION_TEXT_LIMIT = 300

# Cheap per-element checks: identity, editability, rendering, opt-out marker.
STRUCTURE_PROBE_SCRIPT = """
el => {
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const marker = (el.getAttribute('data-autofill') || '').toLowerCase();
    return {
        tag: el.tagName.toLowerCase(),
        type: (el.getAttribute('type') || '').toLowerCase(),
        name: el.getAttribute('name') || '',
        id: el.id || '',
        className: typeof el.className === 'string' ? el.className : '',
        placeholder: el.getAttribute('placeholder') || '',
        ariaLabel: el.getAttribute('aria-label') || '',
        value: el.value !== undefined && el.value !== null ? String(el.value) : '',
        multiple: !!el.multiple,
        contentEditable: !!el.isContentEditable,
        disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
        readOnly: !!el.readOnly,
        width: rect.width,
        height: rect.height,
        display: style.display,
        visibility: style.visibility,
        skip: el.hasAttribute('data-autofill-skip') || ['off', 'false', 'skip'].includes(marker),
    };
}
"""

# Text around the element that may name it, grouped by source.
LABEL_PROBE_SCRIPT = """
(el, opts) => {
    const clean = t => (t || '').replace(/\\s+/g, ' ').trim();
    const result = {
        explicit: [], enclosing: '', siblings: [], ancestors: [], accessible: [],
        legend: '', following: '', question: '', options: [],
    };

    if (el.labels) {
        for (const label of Array.from(el.labels)) {
            const text = clean(label.textContent);
            if (text) result.explicit.push(text);
        }
    }

    const enclosing = el.closest('label');
    if (enclosing) result.enclosing = clean(enclosing.textContent);

    let sibling = el.previousElementSibling;
    let count = 0;
    while (sibling && count < 3) {
        const text = clean(sibling.textContent);
        if (text && text.length < opts.siblingLimit) result.siblings.push(text);
        sibling = sibling.previousElementSibling;
        count++;
    }

    let parent = el.parentElement;
    count = 0;
    while (parent && count < 2) {
        const direct = Array.from(parent.childNodes)
            .filter(node => node.nodeType === Node.TEXT_NODE)
            .map(node => clean(node.textContent))
            .filter(text => text && text.length < opts.ancestorLimit)
            .join(' ');
        if (direct) result.ancestors.push(direct);
        parent = parent.parentElement;
        count++;
    }

    for (const attr of ['aria-label', 'title']) {
        const text = clean(el.getAttribute(attr));
        if (text) result.accessible.push(text);
    }
    const labelledBy = el.getAttribute('aria-labelledby');
    if (labelledBy) {
        for (const id of labelledBy.split(/\\s+/)) {
            const ref = document.getElementById(id);
            const text = ref ? clean(ref.textContent) : '';
            if (text) result.accessible.push(text);
        }
    }

    const fieldset = el.closest('fieldset');
    const legend = fieldset ? fieldset.querySelector('legend') : null;
    if (legend) result.legend = clean(legend.textContent);

    const next = el.nextSibling;
    if (next) result.following = clean(next.textContent);

    const container = opts.containers.length ? el.closest(opts.containers.join(', ')) : null;
    if (container) {
        const parts = [];
        for (const selector of opts.headings) {
            const heading = container.querySelector(selector);
            const text = heading ? clean(heading.textContent) : '';
            if (text) { parts.push(text); break; }
        }
        for (const selector of opts.descriptions) {
            const desc = container.querySelector(selector);
            const text = desc ? clean(desc.textContent) : '';
            if (text) { parts.push(text); break; }
        }
        if (!parts.length) {
            const text = clean(container.textContent);
            if (text && text.length < opts.questionLimit) parts.push(text);
        }
        result.question = parts.join(' ');
    }

    if (el.tagName === 'SELECT') {
        result.options = Array.from(el.options)
            .filter(opt => !opt.disabled)
            .map(opt => ({ value: opt.value, text: clean(opt.text), index: opt.index }));
    }
    return result;
}
"""


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        key = item.strip()
        if key and key.lower() not in seen:
            seen.add(key.lower())
            result.append(key)
    return result


def collect_label_candidates(labels: Dict[str, Any], grouped: bool = False) -> List[str]:
    """Order label sources from most to least specific.

    Question-container text is used only when no other source produced text.
    For radio groups the legend names the group, while the member's own label
    names just one option, so it is left out.
    """
    candidates: List[str] = []
    if grouped:
        if labels.get("legend"):
            candidates.append(labels["legend"])
    else:
        candidates.extend(labels.get("explicit") or [])
        if labels.get("enclosing"):
            candidates.append(labels["enclosing"])
    candidates.extend(labels.get("siblings") or [])
    candidates.extend(labels.get("ancestors") or [])
    candidates.extend(labels.get("accessible") or [])
    candidates = _dedupe(candidates)
    if not candidates and labels.get("question"):
        candidates = [labels["question"]]
    return candidates


def classify(structure: Dict[str, Any]) -> Optional[Tuple[FieldKind, str]]:
    """Map probe output to (kind, input type), or None for elements that are never filled."""
    tag = structure.get("tag", "")
    input_type = structure.get("type", "")

    if tag == "textarea":
        return FieldKind.LONG_TEXT, "textarea"
    if tag == "select":
        if structure.get("multiple"):
            return None
        return FieldKind.SINGLE_SELECT, "select"
    if tag == "input":
        if input_type == "password" or input_type in IGNORED_INPUT_TYPES:
            return None
        if input_type == "date":
            return FieldKind.DATE, "date"
        if input_type == "radio":
            return FieldKind.RADIO_GROUP, "radio"
        if input_type == "checkbox":
            return FieldKind.CHECKBOX, "checkbox"
        if input_type in TEXT_INPUT_TYPES:
            return FieldKind.SHORT_TEXT, input_type or "text"
        return None
    if structure.get("contentEditable"):
        return FieldKind.LONG_TEXT, "contenteditable"
    return None


def is_fillable(structure: Dict[str, Any]) -> bool:
    """Editability, visibility and opt-out checks."""
    if structure.get("disabled") or structure.get("readOnly") or structure.get("skip"):
        return False
    if not structure.get("width") and not structure.get("height"):
        return False
    if structure.get("display") == "none" or structure.get("visibility") == "hidden":
        return False
    return True


def raw_attributes(structure: Dict[str, Any], input_type: str) -> Dict[str, str]:
    attrs = {
        "name": structure.get("name", ""),
        "id": structure.get("id", ""),
        "placeholder": structure.get("placeholder", ""),
        "class": structure.get("className", ""),
        "aria-label": structure.get("ariaLabel", ""),
    }
    # A specific input type (email, tel, url, date) is itself a hint
    if input_type not in ("text", "select", "textarea", "radio", "checkbox", "contenteditable"):
        attrs["type"] = input_type
    return attrs


def structural_key(structure: Dict[str, Any]) -> str:
    """Cache key for the label probe; empty when the element has no stable identity."""
    if not structure.get("id") and not structure.get("name"):
        return ""
    parts = [structure.get("tag", ""), structure.get("id", ""), structure.get("name", ""),
             structure.get("className", "")]
    if structure.get("type") in ("radio", "checkbox"):
        parts.append(structure.get("value", ""))
    return "|".join(parts)


@dataclass
class _CacheEntry:
    labels: Dict[str, Any]
    stored_at: float


@dataclass
class _Probed:
    handle: ElementHandle
    structure: Dict[str, Any]
    kind: FieldKind
    input_type: str
    labels: Dict[str, Any]
    cache_key: str


class FieldExtractor:
    """Scans a page or frame for fillable elements and describes each one."""

    def __init__(
        self,
        batch_size: int = 25,
        cache_ttl: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.batch_size = max(1, batch_size)
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self):
        self._cache.clear()

    def _purge_expired(self):
        now = self._clock()
        expired = [key for key, entry in self._cache.items() if now - entry.stored_at > self.cache_ttl]
        for key in expired:
            del self._cache[key]

    async def extract(
        self,
        target: Union[Page, Frame],
        builder: FormBuilder = FormBuilder.GENERIC,
    ) -> List[FieldDescriptor]:
        """Extract fillable fields from a page or frame, in document order.

        Never raises for element-level problems; an element whose probe fails is
        skipped.
        """
        self._purge_expired()
        selectors = question_selectors(builder)
        label_opts = {
            "containers": selectors.containers,
            "headings": selectors.headings,
            "descriptions": selectors.descriptions,
            "siblingLimit": SIBLING_TEXT_LIMIT,
            "ancestorLimit": ANCESTOR_TEXT_LIMIT,
            "questionLimit": QUESTION_TEXT_LIMIT,
        }

        try:
            elements = await target.query_selector_all(FIELD_QUERY)
        except Exception as e:
            logger.debug("Field query failed: %s", e)
            return []

        probed: List[_Probed] = []
        for start in range(0, len(elements), self.batch_size):
            if start:
                await asyncio.sleep(0)
            for element in elements[start:start + self.batch_size]:
                item = await self._probe(element, label_opts)
                if item is not None:
                    probed.append(item)
                else:
                    await self._dispose(element)

        fields, dropped = self._build_descriptors(probed)
        await release(dropped)
        logger.debug("Extracted %d fields from %d elements", len(fields), len(elements))
        return fields

    async def _probe(self, element: ElementHandle, label_opts: Dict[str, Any]) -> Optional[_Probed]:
        try:
            structure = await element.evaluate(STRUCTURE_PROBE_SCRIPT)
        except Exception as e:
            logger.debug("Structure probe failed: %s", e)
            return None

        classified = classify(structure)
        if classified is None or not is_fillable(structure):
            return None
        kind, input_type = classified

        key = structural_key(structure)
        entry = self._cache.get(key) if key else None
        if entry is not None:
            labels = entry.labels
        else:
            try:
                labels = await element.evaluate(LABEL_PROBE_SCRIPT, label_opts)
            except Exception as e:
                logger.debug("Label probe failed for %s: %s", structure.get("name") or structure.get("id"), e)
                return None
            if key:
                self._cache[key] = _CacheEntry(labels=labels, stored_at=self._clock())

        return _Probed(element, structure, kind, input_type, labels, key)

    def _build_descriptors(
        self, probed: List[_Probed]
    ) -> Tuple[List[FieldDescriptor], List[FieldDescriptor]]:
        fields: List[FieldDescriptor] = []
        dropped: List[FieldDescriptor] = []
        groups: Dict[str, FieldDescriptor] = {}

        for item in probed:
            structure = item.structure
            if item.kind == FieldKind.RADIO_GROUP:
                name = structure.get("name", "")
                explicit = item.labels.get("explicit") or [""]
                display = explicit[0] or item.labels.get("following") or structure.get("value", "")
                option = FieldOption(value=structure.get("value", ""), text=display, handle=item.handle)
                group = groups.get(name) if name else None
                if group is not None:
                    group.options.append(option)
                    continue
                descriptor = FieldDescriptor(
                    handle=None,
                    kind=FieldKind.RADIO_GROUP,
                    input_type="radio",
                    raw_attributes=raw_attributes(structure, "radio"),
                    label_candidates=collect_label_candidates(item.labels, grouped=True),
                    options=[option],
                    cache_key=item.cache_key,
                )
                if name:
                    groups[name] = descriptor
            else:
                options = []
                if item.kind == FieldKind.SINGLE_SELECT:
                    options = [FieldOption(value=o.get("value", ""), text=o.get("text", ""), index=o.get("index"))
                               for o in item.labels.get("options") or []]
                labels = collect_label_candidates(item.labels)
                if item.kind == FieldKind.CHECKBOX and not labels and item.labels.get("following"):
                    labels = [item.labels["following"]]
                descriptor = FieldDescriptor(
                    handle=item.handle,
                    kind=item.kind,
                    input_type=item.input_type,
                    raw_attributes=raw_attributes(structure, item.input_type),
                    label_candidates=labels,
                    options=options,
                    cache_key=item.cache_key,
                )

            if not descriptor.search_text:
                logger.debug("Dropping field without any identifying text")
                dropped.append(descriptor)
                continue
            descriptor.order = len(fields)
            fields.append(descriptor)

        return fields, dropped

    @staticmethod
    async def _dispose(handle: Any):
        try:
            await handle.dispose()
        except Exception:
            pass


async def release(fields: List[FieldDescriptor]):
    """Dispose every element handle held by the descriptors."""
    for descriptor in fields:
        for handle in descriptor.handles:
            await FieldExtractor._dispose(handle)


async def count_fillable(frame: Frame) -> int:
    try:
        return len(await frame.query_selector_all(FIELD_QUERY))
    except Exception:
        return 0


async def locate_form_frame(page: Page) -> Frame:
    """Find the frame containing the form: the main frame when it has fields,
    otherwise the child frame with the most."""
    main = page.main_frame
    if await count_fillable(main) > 0:
        return main

    best, best_count = main, 0
    for frame in page.frames:
        if frame == main:
            continue
        count = await count_fillable(frame)
        if count > best_count:
            best, best_count = frame, count
    if best is not main:
        logger.debug("Found form in iframe: %s", (best.url or "")[:80])
    return best
