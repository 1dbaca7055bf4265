"""
Autofill manager: runs one extract -> match -> fill invocation against a page.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import urlparse

from .config import Profile, Settings, is_blacklisted, validate_profile_data
from .errors import (
    AutofillError,
    BlacklistedDomainError,
    FillFailedError,
    NoFieldsFoundError,
    NoMatchesFoundError,
)
from .extractor import FieldExtractor, locate_form_frame, release
from .form_builder import detect_form_builder
from .form_filler import REDUCED_EVENTS, SELECT_EVENTS, TEXT_EVENTS, EventPolicy, FillExecutor
from .form_models import FieldDescriptor, FillOutcome
from .matcher import PatternMatcher
from .notifications import Severity

logger = logging.getLogger(__name__)


class AutofillStatus(Enum):
    """How an invocation ended."""
    FILLED = "filled"
    NO_FIELDS = "no_fields"
    NO_MATCHES = "no_matches"


@dataclass
class AutofillResult:
    """Outcome of one invocation."""
    filled_count: int
    message: str
    status: AutofillStatus
    outcomes: List[FillOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"filledCount": self.filled_count, "message": self.message}


def executor_from_settings(settings: Settings) -> FillExecutor:
    """Fill executor with the select-event delay taken from the settings."""
    return FillExecutor(
        text_policy=TEXT_EVENTS,
        select_policy=EventPolicy(SELECT_EVENTS.signals, settings.event_delay_ms),
        reduced_policy=REDUCED_EVENTS,
    )


class AutofillManager:
    """Single entry point for filling the current page with a profile.

    One invocation runs at a time per page. Element handles gathered during an
    invocation are released before it returns.
    """

    def __init__(
        self,
        page,
        settings: Optional[Settings] = None,
        extractor: Optional[FieldExtractor] = None,
        matcher: Optional[PatternMatcher] = None,
        executor: Optional[FillExecutor] = None,
        notifier=None,
    ):
        self.page = page
        self.settings = settings or Settings()
        self.extractor = extractor or FieldExtractor(cache_ttl=self.settings.cache_ttl_seconds)
        self.matcher = matcher or PatternMatcher()
        self.executor = executor or executor_from_settings(self.settings)
        self.notifier = notifier
        self._lock = asyncio.Lock()

    async def _notify(self, message: str, severity: Severity):
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(message, severity)
        except Exception as e:
            logger.debug("Notification failed: %s", e)

    async def perform_autofill(self, profile: Profile) -> AutofillResult:
        """Fill the page with the profile.

        Missing fields or matches are reported as a result with zero fills.

        Raises:
            FillFailedError: if every matched field failed to verify.
        """
        async with self._lock:
            return await self._perform(profile)

    async def _perform(self, profile: Profile) -> AutofillResult:
        try:
            await self.page.wait_for_load_state("domcontentloaded")
        except Exception as e:
            logger.debug("Load state wait failed: %s", e)

        frame = await locate_form_frame(self.page)
        html = None
        try:
            html = await self.page.content()
        except Exception:
            pass
        detection = detect_form_builder(self.page.url, html)
        logger.debug("Form builder: %s (%s)", detection.builder.value, detection.detection_method)

        fields = await self.extractor.extract(frame, detection.builder)
        held: List[FieldDescriptor] = list(fields)
        try:
            if not fields:
                message = str(NoFieldsFoundError())
                await self._notify(message, Severity.WARNING)
                return AutofillResult(0, message, AutofillStatus.NO_FIELDS)

            matches = self.matcher.match(fields, profile)
            if not matches:
                message = str(NoMatchesFoundError(len(fields)))
                await self._notify(message, Severity.WARNING)
                return AutofillResult(0, message, AutofillStatus.NO_MATCHES)

            outcomes = await self.executor.fill_all(matches)
            if not any(o.filled for o in outcomes):
                error = FillFailedError(len(matches), outcomes)
                await self._notify(str(error), Severity.ERROR)
                raise error

            outcomes.extend(await self._rescan(frame, detection.builder, profile, fields, held))

            filled = sum(1 for o in outcomes if o.filled)
            message = f"Autofilled {filled} field(s)!"
            await self._notify(message, Severity.SUCCESS)
            return AutofillResult(filled, message, AutofillStatus.FILLED, outcomes)
        finally:
            await release(held)

    async def _rescan(
        self,
        frame,
        builder,
        profile: Profile,
        seen_fields: List[FieldDescriptor],
        held: List[FieldDescriptor],
    ) -> List[FillOutcome]:
        """Fill fields revealed by earlier writes (e.g. conditional questions)."""
        seen: Set[str] = {f.cache_key or f.search_text for f in seen_fields}
        outcomes: List[FillOutcome] = []
        for attempt in range(self.settings.rescan_passes):
            fields = await self.extractor.extract(frame, builder)
            held.extend(fields)
            new_fields = [f for f in fields if (f.cache_key or f.search_text) not in seen]
            if not new_fields:
                break
            logger.debug("Re-scan %d found %d new fields", attempt + 1, len(new_fields))
            seen.update(f.cache_key or f.search_text for f in new_fields)
            matches = self.matcher.match(new_fields, profile, positional=False)
            outcomes.extend(await self.executor.fill_all(matches))
        return outcomes

    async def handle_command(self, command: Dict[str, Any]) -> Dict[str, Any]:
        """Handle an ``{"action": "autofill", "data": {...}}`` command.

        Always returns a response mapping; failures carry a reason string.
        """
        if not isinstance(command, dict) or command.get("action") != "autofill":
            action = command.get("action") if isinstance(command, dict) else None
            return {"success": False, "error": f"Unknown action: {action}"}

        try:
            url = self.page.url
            if is_blacklisted(url, self.settings):
                raise BlacklistedDomainError(urlparse(url).hostname or url)
            profile = validate_profile_data(command.get("data") or {})
            result = await asyncio.wait_for(
                self.perform_autofill(profile),
                timeout=self.settings.fill_timeout_seconds or None,
            )
        except asyncio.TimeoutError:
            logger.debug("Autofill timed out after %ss", self.settings.fill_timeout_seconds)
            return {"success": False, "error": "Autofill timed out"}
        except AutofillError as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.debug("Autofill failed", exc_info=True)
            return {"success": False, "error": f"Autofill failed: {e}"}

        return {"success": True, "result": result.to_dict()}


class RescanTrigger:
    """Debounced "document changed" signal.

    Every notify() restarts the quiet-period timer; the callback runs once the
    document has been quiet for ``debounce_seconds``. A running callback is never
    cancelled: changes seen while it runs queue one follow-up run.
    """

    def __init__(self, callback: Callable[[], Awaitable[Any]], debounce_seconds: float = 1.0):
        self.callback = callback
        self.debounce_seconds = debounce_seconds
        self._timer: Optional[asyncio.Task] = None
        self._running: Optional[asyncio.Task] = None
        self._rerun = False

    def notify(self):
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.ensure_future(self._fire())

    async def _fire(self):
        await asyncio.sleep(self.debounce_seconds)
        if self._running is not None and not self._running.done():
            self._rerun = True
            return
        self._running = asyncio.ensure_future(self._run())

    async def _run(self):
        while True:
            self._rerun = False
            try:
                await self.callback()
            except Exception as e:
                logger.warning("Re-scan failed: %s", e)
            if not self._rerun:
                break

    @property
    def pending(self) -> bool:
        return any(task is not None and not task.done() for task in (self._timer, self._running))

    async def wait(self):
        """Wait for a pending timer and the run it starts to finish."""
        await self._settle(self._timer)
        await self._settle(self._running)

    @staticmethod
    async def _settle(task: Optional[asyncio.Task]):
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def cancel(self):
        for task in (self._timer, self._running):
            if task is not None:
                task.cancel()
        self._timer = self._running = None
        self._rerun = False
