"""
Form filler module for writing matched profile values into form fields.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from .dates import format_date, infer_date_pattern, to_iso
from .errors import FillFailedError
from .field_mapping import DATE_ATTRIBUTES, is_truthy, match_option
from .form_models import FieldKind, FillOutcome, MatchResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventPolicy:
    """Ordered event signals emitted after a write, with a delay between them.

    A signal is an event type, optionally with a key: ``"keydown:Enter"``.
    """
    signals: Tuple[str, ...]
    delay_ms: int = 0

    def events(self) -> List[Tuple[str, Dict[str, Any]]]:
        result = []
        for signal in self.signals:
            event_type, _, key = signal.partition(":")
            result.append((event_type, {"key": key} if key else {}))
        return result


TEXT_EVENTS = EventPolicy(("focus", "keydown", "input", "keyup", "change", "blur"), delay_ms=10)
SELECT_EVENTS = EventPolicy(
    ("focus", "pointerdown", "mousedown", "click", "change", "input",
     "keydown:Enter", "keyup:Enter", "blur"),
    delay_ms=50,
)
REDUCED_EVENTS = EventPolicy(("input", "change"), delay_ms=0)

READ_VALUE_SCRIPT = """
el => ['INPUT', 'TEXTAREA'].includes(el.tagName) ? String(el.value) : (el.textContent || '')
"""

# The prototype setter bypasses instance-level overrides installed by reactive
# frameworks, so their change tracking sees the new value.
WRITE_VALUE_SCRIPT = """
(el, value) => {
    if (!['INPUT', 'TEXTAREA'].includes(el.tagName)) {
        el.textContent = value;
        return;
    }
    const proto = el.tagName === 'TEXTAREA'
        ? window.HTMLTextAreaElement.prototype
        : window.HTMLInputElement.prototype;
    const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
    setter.call(el, '');
    setter.call(el, value);
}
"""

READ_SELECT_SCRIPT = "el => el.selectedIndex"

SELECT_OPTION_SCRIPT = """
(el, index) => {
    for (const option of Array.from(el.options)) option.selected = false;
    el.options[index].selected = true;
    el.selectedIndex = index;
}
"""

SELECT_INDEX_SCRIPT = "(el, index) => { el.selectedIndex = index; }"

READ_CHECKED_SCRIPT = "el => !!el.checked"

SET_CHECKED_SCRIPT = """
(el, checked) => {
    const setter = Object.getOwnPropertyDescriptor(window.HTMLInputElement.prototype, 'checked').set;
    setter.call(el, checked);
}
"""


def _preview(value: str) -> str:
    return value if len(value) <= 30 else value[:30] + "..."


class FillExecutor:
    """Writes matched values through an element-kind specific protocol.

    Each write is read back; on mismatch exactly one retry is made with the
    reduced event policy. Field-level failures never abort the remaining fills.
    """

    def __init__(
        self,
        text_policy: EventPolicy = TEXT_EVENTS,
        select_policy: EventPolicy = SELECT_EVENTS,
        reduced_policy: EventPolicy = REDUCED_EVENTS,
        verify_delay_ms: int = 100,
    ):
        self.text_policy = text_policy
        self.select_policy = select_policy
        self.reduced_policy = reduced_policy
        self.verify_delay_ms = verify_delay_ms

    async def fill(self, matches: Sequence[MatchResult]) -> int:
        """Fill all matches and return the number that verified.

        Raises:
            FillFailedError: if there were matches and none of them verified.
        """
        outcomes = await self.fill_all(matches)
        filled = sum(1 for outcome in outcomes if outcome.filled)
        if matches and filled == 0:
            raise FillFailedError(len(matches), outcomes)
        return filled

    async def fill_all(self, matches: Sequence[MatchResult]) -> List[FillOutcome]:
        outcomes = []
        for match in matches:
            try:
                outcome = await self.fill_field(match)
            except Exception as e:
                logger.debug("Fill error for %s: %s", match.field.display_name, e)
                outcome = FillOutcome(match=match, filled=False, final_value="", error=str(e))
            logger.debug(
                "%s %s <- %s (%s, attempts=%d)",
                "Filled" if outcome.filled else "FAILED",
                match.field.display_name, _preview(outcome.final_value),
                match.data_key, outcome.attempts,
            )
            outcomes.append(outcome)
        return outcomes

    async def fill_field(self, match: MatchResult) -> FillOutcome:
        kind = match.field.kind
        if kind == FieldKind.SINGLE_SELECT:
            return await self._fill_select(match)
        if kind == FieldKind.RADIO_GROUP:
            return await self._fill_radio(match)
        if kind == FieldKind.CHECKBOX:
            return await self._fill_checkbox(match)
        return await self._fill_text(match, self.target_text(match))

    # Text and date

    @staticmethod
    def target_text(match: MatchResult) -> str:
        """Value to write into a text-like field, reformatting dates."""
        field = match.field
        if field.kind == FieldKind.DATE or field.input_type == "date":
            return to_iso(match.value)
        if match.data_key in DATE_ATTRIBUTES:
            hints = [
                field.raw_attributes.get("placeholder", ""),
                field.raw_attributes.get("aria-label", ""),
                *field.label_candidates,
            ]
            return format_date(match.value, infer_date_pattern(hints))
        return match.value

    async def _fill_text(self, match: MatchResult, value: str) -> FillOutcome:
        handle = match.field.handle
        current = await self._read_value(handle)
        if current == value:
            return FillOutcome(match=match, filled=True, final_value=current, attempts=0)

        await handle.evaluate(WRITE_VALUE_SCRIPT, value)
        await self._emit(handle, self.text_policy)
        current = await self._read_value(handle)
        if current == value:
            return FillOutcome(match=match, filled=True, final_value=current, attempts=1)

        logger.debug("Read-back mismatch for %s, retrying", match.field.display_name)
        await handle.evaluate(WRITE_VALUE_SCRIPT, value)
        await self._emit(handle, self.reduced_policy)
        current = await self._read_value(handle)
        return FillOutcome(match=match, filled=current == value, final_value=current, attempts=2)

    # Select

    async def _fill_select(self, match: MatchResult) -> FillOutcome:
        field = match.field
        index = match_option(field.options, match.value, match.data_key)
        if index is None:
            return FillOutcome(match=match, filled=False, final_value="", error="no matching option")
        option = field.options[index]
        target_text = option.text
        dom_index = option.dom_index(index)
        handle = field.handle

        if await handle.evaluate(READ_SELECT_SCRIPT) == dom_index:
            return FillOutcome(match=match, filled=True, final_value=target_text, attempts=0)

        await handle.evaluate(SELECT_OPTION_SCRIPT, dom_index)
        await self._emit(handle, self.select_policy)
        await self._verify_pause()
        if await handle.evaluate(READ_SELECT_SCRIPT) == dom_index:
            return FillOutcome(match=match, filled=True, final_value=target_text, attempts=1)

        logger.debug("Select verification failed for %s, retrying by index", field.display_name)
        await handle.evaluate(SELECT_INDEX_SCRIPT, dom_index)
        await self._emit(handle, self.reduced_policy)
        await self._verify_pause()
        filled = await handle.evaluate(READ_SELECT_SCRIPT) == dom_index
        return FillOutcome(match=match, filled=filled, final_value=target_text if filled else "", attempts=2)

    # Radio group

    async def _fill_radio(self, match: MatchResult) -> FillOutcome:
        field = match.field
        index = match_option(field.options, match.value, match.data_key)
        if index is None:
            return FillOutcome(match=match, filled=False, final_value="", error="no matching option")
        option = field.options[index]
        member = option.handle

        if await member.evaluate(READ_CHECKED_SCRIPT):
            return FillOutcome(match=match, filled=True, final_value=option.text, attempts=0)

        await member.evaluate(SET_CHECKED_SCRIPT, True)
        await self._emit(member, self.select_policy)
        await self._verify_pause()
        if await member.evaluate(READ_CHECKED_SCRIPT):
            return FillOutcome(match=match, filled=True, final_value=option.text, attempts=1)

        await member.evaluate(SET_CHECKED_SCRIPT, True)
        await self._emit(member, self.reduced_policy)
        await self._verify_pause()
        filled = bool(await member.evaluate(READ_CHECKED_SCRIPT))
        return FillOutcome(match=match, filled=filled, final_value=option.text if filled else "", attempts=2)

    # Checkbox

    async def _fill_checkbox(self, match: MatchResult) -> FillOutcome:
        handle = match.field.handle
        desired = is_truthy(match.value)
        final_value = "checked" if desired else "unchecked"

        if bool(await handle.evaluate(READ_CHECKED_SCRIPT)) == desired:
            return FillOutcome(match=match, filled=True, final_value=final_value, attempts=0)

        # No click here: a dispatched click toggles the box a second time.
        for attempt, policy in ((1, self.text_policy), (2, self.reduced_policy)):
            await handle.evaluate(SET_CHECKED_SCRIPT, desired)
            await self._emit(handle, policy)
            if bool(await handle.evaluate(READ_CHECKED_SCRIPT)) == desired:
                return FillOutcome(match=match, filled=True, final_value=final_value, attempts=attempt)
        return FillOutcome(match=match, filled=False, final_value="", attempts=2)

    # Helpers

    @staticmethod
    async def _read_value(handle: Any) -> str:
        value = await handle.evaluate(READ_VALUE_SCRIPT)
        return "" if value is None else str(value)

    async def _emit(self, handle: Any, policy: EventPolicy):
        events = policy.events()
        for position, (event_type, init) in enumerate(events):
            if position and policy.delay_ms:
                await asyncio.sleep(policy.delay_ms / 1000)
            if init:
                await handle.dispatch_event(event_type, init)
            else:
                await handle.dispatch_event(event_type)

    async def _verify_pause(self):
        if self.verify_delay_ms:
            await asyncio.sleep(self.verify_delay_ms / 1000)
