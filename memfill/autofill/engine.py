"""Autofill orchestration: detect, analyze, match, fill.

The engine is single-use: one instance drives exactly one run from
``idle`` to ``completed`` or ``failed``. Cancellation is cooperative;
``stop()`` sets a flag that is checked at every suspension point and
closes the page session.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

from ..core.config import Settings
from ..core.errors import AbortedByUser, AutofillError, EmptyInputError
from .compressor import build_website_context, compress_fields, compress_memories
from .fallback_matcher import FallbackMatcher
from .fill_executor import FillExecutor
from .mapping_utils import select_fillable
from .models import (
    AutofillProgress,
    AutofillResult,
    CompressedField,
    CompressedMemory,
    ExtractedForm,
    FieldMapping,
    ProgressState,
    WebsiteContext,
)

if TYPE_CHECKING:
    from ..browser.page_session import PageSession
    from ..memory.store import MemoryEntry
    from .ai_matcher import AIMatcher

logger = logging.getLogger(__name__)

PageSessionFactory = Callable[[], Awaitable["PageSession"]]
ProgressCallback = Callable[[AutofillProgress], None]

EXTRACTION_INSTRUCTION = (
    "Extract all visible, interactive form fields on this page. Include text inputs, "
    "email inputs, phone inputs, textareas, selects/dropdowns, checkboxes, date pickers, "
    "and number inputs. Exclude hidden fields, submit buttons, and password fields. "
    "For select/dropdown fields, include all available options."
)

ALLOWED_TRANSITIONS: dict[ProgressState, frozenset[ProgressState]] = {
    ProgressState.IDLE: frozenset({ProgressState.DETECTING, ProgressState.FAILED}),
    ProgressState.DETECTING: frozenset({ProgressState.ANALYZING, ProgressState.FAILED}),
    ProgressState.ANALYZING: frozenset({ProgressState.MATCHING, ProgressState.FAILED}),
    ProgressState.MATCHING: frozenset(
        {ProgressState.FILLING, ProgressState.COMPLETED, ProgressState.FAILED}
    ),
    ProgressState.FILLING: frozenset({ProgressState.COMPLETED, ProgressState.FAILED}),
    ProgressState.COMPLETED: frozenset(),
    ProgressState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({ProgressState.COMPLETED, ProgressState.FAILED})


class AutofillEngine:
    """Drives one autofill run against a page session.

    Attributes:
        state: Current orchestration state.
        progress_log: Every progress event emitted so far, in order.
    """

    def __init__(
        self,
        session_factory: PageSessionFactory,
        settings: Optional[Settings] = None,
        ai_matcher: Optional[AIMatcher] = None,
        fallback_matcher: Optional[FallbackMatcher] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            session_factory: Coroutine factory opening a page session.
            settings: Application settings, defaults when omitted.
            ai_matcher: AI matcher; None uses rule-based matching only.
            fallback_matcher: Matcher used when the AI step fails.
            on_progress: Callback receiving every progress event.
        """
        self._session_factory = session_factory
        self._settings = settings or Settings()
        self._ai_matcher = ai_matcher
        self._fallback = fallback_matcher or FallbackMatcher()
        self._on_progress = on_progress

        self._state = ProgressState.IDLE
        self._aborted = False
        self._page: Optional[PageSession] = None
        self._mappings: list[FieldMapping] = []
        self._filled: list[str] = []
        self.progress_log: list[AutofillProgress] = []

    @property
    def state(self) -> ProgressState:
        return self._state

    @property
    def aborted(self) -> bool:
        return self._aborted

    async def run(self, url: str, memories: Sequence[MemoryEntry]) -> AutofillResult:
        """Run the full pipeline for one URL.

        Never raises; every failure is returned as an unsuccessful result.
        """
        start = time.perf_counter()

        if self._state != ProgressState.IDLE:
            return AutofillResult(
                success=False,
                error="Engine has already been used for a run",
                error_kind="internal",
            )

        try:
            return await self._run(url, memories, start)
        except AutofillError as e:
            return self._failure(str(e), e.error_kind, start)
        except Exception as e:
            if self._aborted:
                return self._failure(str(AbortedByUser()), AbortedByUser.error_kind, start)
            logger.exception("Autofill pipeline failed")
            return self._failure(str(e) or type(e).__name__, "internal", start)
        finally:
            await self.close()

    async def stop(self) -> None:
        """Abort the run and release the page session."""
        if not self._aborted:
            logger.info("Stopping autofill run")
        self._aborted = True
        await self.close()

    async def close(self) -> None:
        """Close the page session, best effort."""
        page, self._page = self._page, None
        if page is None:
            return
        try:
            await page.close()
        except Exception as e:
            logger.warning(f"Error closing page session: {e}")

    async def _run(
        self,
        url: str,
        memories: Sequence[MemoryEntry],
        start: float,
    ) -> AutofillResult:
        self._emit(ProgressState.DETECTING, "Launching browser…")
        page = await self._open_session()

        self._emit(ProgressState.DETECTING, f"Navigating to {url}…")
        await page.navigate(url)
        self._check_aborted()

        settle_ms = self._settings.browser.settle_delay_ms
        if settle_ms > 0:
            await asyncio.sleep(settle_ms / 1000)
        self._check_aborted()

        extracted = await page.extract(EXTRACTION_INSTRUCTION, ExtractedForm)
        self._check_aborted()

        detected = len(extracted.fields)
        if detected == 0:
            raise EmptyInputError("No form fields detected on the page")
        logger.info(f"Extracted {detected} fields from {extracted.page_url or url}")

        self._emit(
            ProgressState.ANALYZING,
            f"Found {detected} form fields. Analyzing…",
            fields_detected=detected,
        )
        matching = self._settings.matching
        fields, _ = compress_fields(extracted.fields, matching.max_fields)
        if not fields:
            raise EmptyInputError(
                f"No usable form fields detected on the page ({detected} found, all filtered)"
            )
        compressed_memories = compress_memories(
            memories, matching.max_memories, matching.max_answer_chars
        )
        context = build_website_context(extracted)

        self._emit(
            ProgressState.MATCHING,
            f"Matching {len(fields)} fields to {len(compressed_memories)} memories…",
            fields_detected=detected,
        )
        self._mappings = await self._match(fields, compressed_memories, context)
        self._check_aborted()

        threshold = self._settings.ai.confidence_threshold
        fillable = select_fillable(self._mappings, threshold)
        logger.info(
            f"Matched {len(fillable)}/{len(self._mappings)} fields at or above {threshold}"
        )

        if fillable:
            self._emit(
                ProgressState.FILLING,
                f"Filling {len(fillable)} fields…",
                fields_detected=detected,
                fields_matched=len(fillable),
            )
            executor = FillExecutor(page)
            self._filled = await executor.fill_all(
                fillable, extracted.fields, should_continue=lambda: not self._aborted
            )
            self._check_aborted()

        elapsed = time.perf_counter() - start
        self._emit(
            ProgressState.COMPLETED,
            f"Done, filled {len(self._filled)}/{len(self._mappings)} fields in {elapsed:.1f}s",
            fields_detected=detected,
            fields_matched=len(fillable),
            fields_filled=len(self._filled),
        )
        return AutofillResult(
            success=True,
            mappings=self._mappings,
            processing_time=elapsed * 1000,
            filled_fields=self._filled,
        )

    async def _open_session(self) -> PageSession:
        page = await self._session_factory()
        self._page = page
        if self._aborted:
            await self.close()
            raise AbortedByUser()
        return page

    async def _match(
        self,
        fields: list[CompressedField],
        memories: list[CompressedMemory],
        context: WebsiteContext,
    ) -> list[FieldMapping]:
        if self._ai_matcher is None:
            logger.info("No AI matcher configured, using rule-based matching")
            return await self._fallback.match_fields(fields, memories)

        outcome = await self._ai_matcher.try_match_fields(fields, memories, context)
        if outcome.ok:
            return outcome.mappings
        logger.warning(f"AI matching failed, falling back to rule-based: {outcome.error}")
        return await self._fallback.match_fields(fields, memories)

    def _check_aborted(self) -> None:
        if self._aborted:
            raise AbortedByUser()

    def _emit(self, state: ProgressState, message: str, **extra: Optional[int]) -> None:
        if state != self._state and state not in ALLOWED_TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal transition {self._state.value} -> {state.value}")
        self._state = state

        progress = AutofillProgress(state=state, message=message, **extra)
        self.progress_log.append(progress)
        logger.info(f"[{state.value}] {message}")
        if self._on_progress is not None:
            self._on_progress(progress)

    def _failure(self, message: str, error_kind: str, start: float) -> AutofillResult:
        if self._state not in TERMINAL_STATES:
            progress = AutofillProgress(state=ProgressState.FAILED, message=message, error=message)
            self._state = ProgressState.FAILED
            self.progress_log.append(progress)
            logger.error(f"[failed] {message}")
            if self._on_progress is not None:
                try:
                    self._on_progress(progress)
                except Exception as e:
                    logger.warning(f"Progress callback failed: {e}")

        return AutofillResult(
            success=False,
            mappings=self._mappings,
            error=message,
            error_kind=error_kind,
            processing_time=(time.perf_counter() - start) * 1000,
            filled_fields=self._filled,
        )
