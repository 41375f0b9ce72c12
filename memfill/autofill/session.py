"""Public autofill entry points.

``AutofillSession`` owns the "active engine" slot: at most one run is live
per session, and starting a new run first closes the previous one.
Nothing here raises across the boundary; failures come back as
``AutofillResult(success=False, ...)``.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from ..browser.page_session import PlaywrightPageSession
from ..core.config import Settings
from ..core.errors import AutofillError, ConfigurationError, EmptyInputError
from ..llm.client import StructuredLLMClient, create_llm_client
from ..llm.providers import get_provider_config, is_valid_provider, validate_provider_key
from ..memory.store import MemoryStore
from .ai_matcher import AIMatcher
from .engine import AutofillEngine, PageSessionFactory, ProgressCallback
from .fallback_matcher import FallbackMatcher
from .models import AutofillProgress, AutofillResult

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, Optional[str], Optional[str]], StructuredLLMClient]

_URL_ADAPTER = TypeAdapter(HttpUrl)


class AutofillSession:
    """Caller-owned handle for running and stopping autofill.

    Attributes:
        settings: Settings snapshot used for every run.
    """

    def __init__(
        self,
        settings: Settings,
        memory_store: MemoryStore,
        session_factory: Optional[PageSessionFactory] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings
        self._memory_store = memory_store
        self._session_factory = session_factory or self._launch_browser
        self._client_factory = client_factory or self._create_client
        self._active_engine: Optional[AutofillEngine] = None
        self._subscribers: list[ProgressCallback] = []

    @property
    def is_running(self) -> bool:
        return self._active_engine is not None

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a progress callback.

        Returns:
            Function that removes the callback again.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def run_autofill(self, url: str) -> AutofillResult:
        """Detect, match and fill the form at ``url``.

        URL, provider, API key and memories are checked first. A request
        rejected by those checks returns a failed result and leaves any
        active run untouched; only a request that passes them closes the
        previous run before starting.
        """
        start = time.perf_counter()
        try:
            self._validate_url(url)
            ai_matcher = self._build_ai_matcher()
            memories = self._memory_store.list_memories()
            if not memories:
                raise EmptyInputError(
                    "No memories stored yet. Add some personal data before running autofill."
                )
        except AutofillError as e:
            logger.warning(f"Autofill not started: {e}")
            return self._failure(str(e), e.error_kind, start)
        except Exception as e:
            logger.exception("Autofill setup failed")
            return self._failure(str(e) or type(e).__name__, "internal", start)

        await self._close_active()

        engine = AutofillEngine(
            session_factory=self._session_factory,
            settings=self.settings,
            ai_matcher=ai_matcher,
            fallback_matcher=FallbackMatcher(),
            on_progress=self._dispatch,
        )
        self._active_engine = engine

        provider = self.settings.ai.selected_provider
        logger.info(f"Starting autofill for {url} with provider={provider}")
        try:
            return await engine.run(url, memories)
        finally:
            await engine.close()
            if self._active_engine is engine:
                self._active_engine = None

    async def stop(self) -> bool:
        """Stop the active run, if any.

        Returns:
            True if a run was stopped.
        """
        engine = self._active_engine
        if engine is None:
            return False
        logger.info("Stopping active autofill engine")
        self._active_engine = None
        await engine.stop()
        return True

    def _validate_url(self, url: str) -> None:
        try:
            _URL_ADAPTER.validate_python(url)
        except ValidationError as e:
            raise ConfigurationError(f"Please enter a valid URL: {url}") from e

    def _build_ai_matcher(self) -> AIMatcher:
        ai = self.settings.ai
        provider = ai.selected_provider
        if not provider:
            raise ConfigurationError(
                "No AI provider selected. Set ai.selected_provider in the settings first."
            )
        if not is_valid_provider(provider):
            raise ConfigurationError(f"Unknown AI provider: {provider}")

        api_key = ai.get_api_key(provider)
        if get_provider_config(provider).requires_api_key and not api_key:
            raise ConfigurationError(
                f"No API key stored for {provider}. Add one under ai.api_keys "
                f"or set {provider.upper()}_API_KEY."
            )
        if not validate_provider_key(provider, api_key):
            logger.warning(f"API key for {provider} does not look like a {provider} key")

        client = self._client_factory(provider, api_key, ai.get_model(provider))
        return AIMatcher(client, temperature=ai.temperature)

    def _create_client(
        self, provider: str, api_key: Optional[str], model: Optional[str]
    ) -> StructuredLLMClient:
        return create_llm_client(provider, api_key, model, self.settings.ai.max_tokens)

    async def _launch_browser(self) -> PlaywrightPageSession:
        return await PlaywrightPageSession.launch(self.settings.browser)

    async def _close_active(self) -> None:
        engine, self._active_engine = self._active_engine, None
        if engine is None:
            return
        logger.info("Closing previous autofill run")
        try:
            await engine.stop()
        except Exception as e:
            logger.warning(f"Error closing previous engine: {e}")

    def _dispatch(self, progress: AutofillProgress) -> None:
        for callback in list(self._subscribers):
            try:
                callback(progress)
            except Exception as e:
                logger.warning(f"Progress subscriber failed: {e}")

    def _failure(self, message: str, error_kind: str, start: float) -> AutofillResult:
        return AutofillResult(
            success=False,
            error=message,
            error_kind=error_kind,
            processing_time=(time.perf_counter() - start) * 1000,
        )
