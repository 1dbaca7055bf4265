"""
Fake Playwright page and element handles.

The fakes answer the extractor probes and the fill scripts by script identity,
so the whole pipeline runs without a browser.
"""

from typing import Any, Dict, List, Optional

import pytest

from autofill.config import Profile
from autofill.extractor import LABEL_PROBE_SCRIPT, STRUCTURE_PROBE_SCRIPT
from autofill.form_filler import (
    READ_CHECKED_SCRIPT,
    READ_SELECT_SCRIPT,
    READ_VALUE_SCRIPT,
    SELECT_INDEX_SCRIPT,
    SELECT_OPTION_SCRIPT,
    SET_CHECKED_SCRIPT,
    WRITE_VALUE_SCRIPT,
    EventPolicy,
    FillExecutor,
)
from autofill.notifications import TOAST_SCRIPT


def empty_labels() -> Dict[str, Any]:
    return {
        "explicit": [], "enclosing": "", "siblings": [], "ancestors": [], "accessible": [],
        "legend": "", "following": "", "question": "", "options": [],
    }


class FakeElement:
    """Stands in for an ElementHandle."""

    def __init__(
        self,
        tag: str = "input",
        type: str = "",
        name: str = "",
        id: str = "",
        class_name: str = "",
        placeholder: str = "",
        aria_label: str = "",
        value: str = "",
        labels: Optional[Dict[str, Any]] = None,
        options: Optional[List[Dict[str, str]]] = None,
        checked: bool = False,
        selected_index: int = -1,
        **structure_overrides,
    ):
        self.structure = {
            "tag": tag,
            "type": type,
            "name": name,
            "id": id,
            "className": class_name,
            "placeholder": placeholder,
            "ariaLabel": aria_label,
            "value": value,
            "multiple": False,
            "contentEditable": False,
            "disabled": False,
            "readOnly": False,
            "width": 120,
            "height": 24,
            "display": "block",
            "visibility": "visible",
            "skip": False,
        }
        self.structure.update(structure_overrides)
        self.labels = empty_labels()
        self.labels.update(labels or {})
        if options is not None:
            self.labels["options"] = options
        self.value = value
        self.checked = checked
        self.selected_index = selected_index
        self.events: List[tuple] = []
        self.writes: List[Any] = []
        self.label_probes = 0
        self.disposed = False
        self.reject_writes = 0  # number of writes a "framework" silently reverts
        self.fail_probes = False

    def _accept_write(self) -> bool:
        if self.reject_writes > 0:
            self.reject_writes -= 1
            return False
        return True

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if self.fail_probes and script in (STRUCTURE_PROBE_SCRIPT, LABEL_PROBE_SCRIPT):
            raise RuntimeError("Execution context was destroyed")
        if script == STRUCTURE_PROBE_SCRIPT:
            return dict(self.structure)
        if script == LABEL_PROBE_SCRIPT:
            self.label_probes += 1
            return dict(self.labels)
        if script == READ_VALUE_SCRIPT:
            return self.value
        if script == WRITE_VALUE_SCRIPT:
            self.writes.append(arg)
            if self._accept_write():
                self.value = arg
            return None
        if script == READ_SELECT_SCRIPT:
            return self.selected_index
        if script in (SELECT_OPTION_SCRIPT, SELECT_INDEX_SCRIPT):
            self.writes.append((script, arg))
            if self._accept_write():
                self.selected_index = arg
            return None
        if script == READ_CHECKED_SCRIPT:
            return self.checked
        if script == SET_CHECKED_SCRIPT:
            self.writes.append(arg)
            if self._accept_write():
                self.checked = arg
            return None
        raise AssertionError(f"Unexpected script: {script[:40]}")

    async def dispatch_event(self, event_type: str, event_init: Optional[Dict[str, Any]] = None):
        self.events.append((event_type, event_init))

    async def dispose(self):
        self.disposed = True

    @property
    def event_types(self) -> List[str]:
        return [event_type for event_type, _ in self.events]


class FakeFrame:
    """Stands in for a Frame (and, through FakePage, a Page)."""

    def __init__(self, elements: Optional[List[FakeElement]] = None, url: str = "https://example.com/form"):
        self.elements = list(elements or [])
        self.url = url
        self.queries: List[str] = []

    async def query_selector_all(self, selector: str) -> List[FakeElement]:
        self.queries.append(selector)
        return list(self.elements)


class FakePage(FakeFrame):
    def __init__(
        self,
        elements: Optional[List[FakeElement]] = None,
        url: str = "https://example.com/form",
        html: str = "<html></html>",
        child_frames: Optional[List[FakeFrame]] = None,
    ):
        super().__init__(elements, url)
        self.html = html
        self.child_frames = list(child_frames or [])
        self.toasts: List[Dict[str, str]] = []

    @property
    def main_frame(self):
        return self

    @property
    def frames(self):
        return [self] + self.child_frames

    async def wait_for_load_state(self, state: str = "load"):
        return None

    async def content(self) -> str:
        return self.html

    async def evaluate(self, script: str, arg: Any = None):
        if script == TOAST_SCRIPT:
            self.toasts.append(arg)
            return None
        raise AssertionError(f"Unexpected page script: {script[:40]}")


class RecordingNotifier:
    def __init__(self):
        self.messages: List[tuple] = []

    async def notify(self, message, severity):
        self.messages.append((message, severity))


def text_input(label: str = "", **kwargs) -> FakeElement:
    labels = {"explicit": [label]} if label else {}
    kwargs.setdefault("type", "text")
    return FakeElement(labels=labels, **kwargs)


@pytest.fixture
def fast_executor():
    """Executor without inter-event delays."""
    return FillExecutor(
        text_policy=EventPolicy(("focus", "keydown", "input", "keyup", "change", "blur")),
        select_policy=EventPolicy(
            ("focus", "pointerdown", "mousedown", "click", "change", "input",
             "keydown:Enter", "keyup:Enter", "blur")
        ),
        reduced_policy=EventPolicy(("input", "change")),
        verify_delay_ms=0,
    )


@pytest.fixture
def jane():
    return Profile(full_name="Jane Doe", email="jane@x.edu")
