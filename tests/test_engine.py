"""End-to-end tests of the orchestration engine with fake page and model."""
from unittest.mock import AsyncMock

import pytest

from conftest import FakePageSession, make_client
from memfill.autofill.ai_matcher import AIBatchMatch, AIMatch, AIMatcher
from memfill.autofill.engine import AutofillEngine
from memfill.autofill.models import ExtractedForm, FieldDescriptor, ProgressState


def _factory(page: FakePageSession):
    async def open_session() -> FakePageSession:
        return page
    return open_session


def _ai_result() -> AIBatchMatch:
    return AIBatchMatch(matches=[
        AIMatch(highlight_index=0, value="Jane Doe", confidence=0.95, reasoning="full name memory"),
        AIMatch(highlight_index=1, value="jane.doe@example.com", confidence=0.9, reasoning="email memory"),
        AIMatch(highlight_index=2, value="US", confidence=0.85, reasoning="country memory"),
    ])


def _engine(page, settings, client=None, progress=None) -> AutofillEngine:
    return AutofillEngine(
        session_factory=_factory(page),
        settings=settings,
        ai_matcher=AIMatcher(client) if client is not None else None,
        on_progress=progress.append if progress is not None else None,
    )


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_ai_matches_filled(self, page, settings, memories) -> None:
        engine = _engine(page, settings, make_client(_ai_result()))
        result = await engine.run("https://example.com/contact", memories)

        assert result.success
        assert result.error is None
        assert [m.field_opid for m in result.mappings] == ["#full_name", "#email", "#country"]
        assert result.filled_fields == ["#full_name", "#email", "#country"]
        assert [a["action"] for a in page.actions] == ["type", "type", "select"]
        assert page.navigated == ["https://example.com/contact"]
        assert page.closed
        assert engine.state == ProgressState.COMPLETED

    @pytest.mark.asyncio
    async def test_password_never_mapped(self, page, settings, memories) -> None:
        result = await _engine(page, settings, make_client(_ai_result())).run(
            "https://example.com/contact", memories
        )
        assert "#password" not in {m.field_opid for m in result.mappings}
        assert all(a["selector"] != "#password" for a in page.actions)

    @pytest.mark.asyncio
    async def test_progress_sequence(self, page, settings, memories) -> None:
        progress = []
        await _engine(page, settings, make_client(_ai_result()), progress).run(
            "https://example.com/contact", memories
        )

        states = [p.state for p in progress]
        assert states == [
            ProgressState.DETECTING,
            ProgressState.DETECTING,
            ProgressState.ANALYZING,
            ProgressState.MATCHING,
            ProgressState.FILLING,
            ProgressState.COMPLETED,
        ]
        assert progress[2].fields_detected == 4
        assert progress[-1].fields_filled == 3
        assert progress[-1].message.startswith("Done, filled 3/3 fields")

    @pytest.mark.asyncio
    async def test_below_threshold_not_filled(self, page, settings, memories) -> None:
        client = make_client(AIBatchMatch(matches=[
            AIMatch(highlight_index=0, value="Jane Doe", confidence=0.55, reasoning="weak"),
        ]))
        progress = []
        result = await _engine(page, settings, client, progress).run(
            "https://example.com/contact", memories
        )

        assert result.success
        assert result.mappings[0].value == "Jane Doe"
        assert result.filled_fields == []
        assert page.actions == []
        assert ProgressState.FILLING not in [p.state for p in progress]

    @pytest.mark.asyncio
    async def test_threshold_from_settings(self, page, settings, memories) -> None:
        settings.ai.confidence_threshold = 0.9
        result = await _engine(page, settings, make_client(_ai_result())).run(
            "https://example.com/contact", memories
        )
        assert result.filled_fields == ["#full_name", "#email"]


class TestFallback:
    @pytest.mark.asyncio
    async def test_ai_failure_uses_rules(self, page, settings, memories) -> None:
        client = make_client(error=RuntimeError("rate limited"))
        result = await _engine(page, settings, client).run("https://example.com/contact", memories)

        assert result.success
        values = {m.field_opid: m.value for m in result.mappings}
        assert values == {
            "#full_name": "Jane Doe",
            "#email": "jane.doe@example.com",
            "#country": "US",
        }
        assert result.filled_fields == ["#full_name", "#email", "#country"]

    @pytest.mark.asyncio
    async def test_no_ai_matcher_uses_rules(self, page, settings, memories) -> None:
        result = await _engine(page, settings).run("https://example.com/contact", memories)

        assert result.success
        assert len(result.mappings) == 3


class TestFailures:
    @pytest.mark.asyncio
    async def test_empty_page(self, settings, memories) -> None:
        page = FakePageSession(ExtractedForm(page_url="https://example.com/empty"))
        progress = []
        engine = _engine(page, settings, make_client(_ai_result()), progress)
        result = await engine.run("https://example.com/empty", memories)

        assert not result.success
        assert result.error == "No form fields detected on the page"
        assert result.error_kind == "empty_input"
        assert progress[-1].state == ProgressState.FAILED
        assert page.closed

    @pytest.mark.asyncio
    async def test_all_fields_filtered(self, settings, memories) -> None:
        page = FakePageSession(ExtractedForm(fields=[
            FieldDescriptor(opid="#x", name="field_1234567890", id="field_9876543210"),
        ]))
        result = await _engine(page, settings).run("https://example.com/form", memories)

        assert not result.success
        assert result.error_kind == "empty_input"
        assert "all filtered" in result.error

    @pytest.mark.asyncio
    async def test_fill_failure_skips_field(self, contact_form, settings, memories) -> None:
        page = FakePageSession(contact_form, failing_selectors=["#email"])
        result = await _engine(page, settings, make_client(_ai_result())).run(
            "https://example.com/contact", memories
        )

        assert result.success
        assert result.filled_fields == ["#full_name", "#country"]
        assert len(result.mappings) == 3

    @pytest.mark.asyncio
    async def test_session_factory_error(self, settings, memories) -> None:
        async def broken_factory():
            raise RuntimeError("browser crashed")

        engine = AutofillEngine(session_factory=broken_factory, settings=settings)
        result = await engine.run("https://example.com", memories)

        assert not result.success
        assert result.error == "browser crashed"
        assert result.error_kind == "internal"

    @pytest.mark.asyncio
    async def test_engine_is_single_use(self, page, settings, memories) -> None:
        engine = _engine(page, settings, make_client(_ai_result()))
        await engine.run("https://example.com/contact", memories)
        second = await engine.run("https://example.com/contact", memories)

        assert not second.success
        assert second.error_kind == "internal"


class TestAbort:
    @pytest.mark.asyncio
    async def test_stop_during_matching(self, page, settings, memories) -> None:
        engine = _engine(page, settings, make_client())

        async def stop_then_answer(**kwargs):
            await engine.stop()
            return _ai_result()

        engine._ai_matcher._client.generate_structured = AsyncMock(side_effect=stop_then_answer)
        result = await engine.run("https://example.com/contact", memories)

        assert not result.success
        assert result.error == "Autofill stopped by user"
        assert result.error_kind == "aborted"
        assert page.actions == []
        assert page.closed
        assert engine.aborted

    @pytest.mark.asyncio
    async def test_stop_before_run(self, page, settings, memories) -> None:
        engine = _engine(page, settings, make_client(_ai_result()))
        await engine.stop()
        result = await engine.run("https://example.com/contact", memories)

        assert result.error_kind == "aborted"
        assert page.navigated == []
        assert page.closed

    @pytest.mark.asyncio
    async def test_stop_while_filling_reports_partial_fill(
        self, contact_form, settings, memories
    ) -> None:
        engine = None

        class StoppingPage(FakePageSession):
            async def act(self, instruction, variables=None):
                result = await super().act(instruction, variables)
                await engine.stop()
                return result

        page = StoppingPage(contact_form)
        engine = _engine(page, settings, make_client(_ai_result()))
        result = await engine.run("https://example.com/contact", memories)

        assert not result.success
        assert result.error_kind == "aborted"
        assert len(page.actions) == 1
        assert result.filled_fields == ["#full_name"]
        assert len(result.mappings) == 3
        assert page.closed
