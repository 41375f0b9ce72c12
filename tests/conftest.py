"""Shared fixtures for memfill tests."""
from __future__ import annotations

from typing import Iterable, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from memfill.autofill.ai_matcher import AIBatchMatch
from memfill.autofill.models import ExtractedForm, FieldDescriptor, SelectOption
from memfill.browser.page_session import ActResult, ObservedElement, PageSession
from memfill.core.config import AIConfig, BrowserConfig, Settings
from memfill.llm.client import StructuredLLMClient
from memfill.memory.store import MemoryEntry

ANTHROPIC_TEST_KEY = "sk-ant-" + "x" * 32


class FakePageSession(PageSession):
    """In-memory page session recording every call."""

    def __init__(
        self,
        extracted: ExtractedForm,
        failing_selectors: Iterable[str] = (),
        reject_selectors: Iterable[str] = (),
    ) -> None:
        self.extracted = extracted
        self.failing = set(failing_selectors)
        self.rejecting = set(reject_selectors)
        self.navigated: list[str] = []
        self.actions: list[dict[str, str]] = []
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def navigate(self, url: str) -> None:
        self.navigated.append(url)

    async def extract(self, instruction, schema):
        return schema.model_validate(self.extracted.model_dump(by_alias=True))

    async def act(self, instruction: str, variables: Optional[dict[str, str]] = None) -> ActResult:
        variables = dict(variables or {})
        self.actions.append(variables)
        if variables["selector"] in self.failing:
            raise RuntimeError("element is detached from the DOM")
        if variables["selector"] in self.rejecting:
            return ActResult(success=False, message="element not editable")
        return ActResult(success=True)

    async def observe(self, instruction: str) -> list[ObservedElement]:
        return [
            ObservedElement(selector=f.opid, description=f.label or f.opid, type=f.type)
            for f in self.extracted.fields
        ]

    async def close(self) -> None:
        self.close_calls += 1


def make_client(result: Optional[AIBatchMatch] = None, error: Optional[Exception] = None) -> Mock:
    """Create a mock structured LLM client."""
    client = Mock(spec=StructuredLLMClient)
    client.provider = "anthropic"
    client.model = "claude-test"
    if error is not None:
        client.generate_structured = AsyncMock(side_effect=error)
    else:
        client.generate_structured = AsyncMock(return_value=result)
    return client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ai=AIConfig(
            selected_provider="anthropic",
            api_keys={"anthropic": ANTHROPIC_TEST_KEY},
            confidence_threshold=0.6,
        ),
        browser=BrowserConfig(settle_delay_ms=0),
    )


@pytest.fixture
def memories() -> list[MemoryEntry]:
    return [
        MemoryEntry(id="m1", question="What is your full name?", answer="Jane Doe", category="personal"),
        MemoryEntry(id="m2", question="Email address", answer="jane.doe@example.com", category="contact"),
        MemoryEntry(id="m3", question="country", answer="United States", category="location"),
        MemoryEntry(id="m4", question="Phone number", answer="+1 555 010 2030", category="contact"),
        MemoryEntry(id="m5", question="Do you want the newsletter?", answer="yes", category="general"),
    ]


@pytest.fixture
def contact_fields() -> list[FieldDescriptor]:
    return [
        FieldDescriptor(opid="#full_name", type="text", label="Full name", name="full_name", id="full_name"),
        FieldDescriptor(opid="#email", type="email", label="Email", name="email", id="email"),
        FieldDescriptor(
            opid="#country",
            type="select",
            label="Country",
            name="country",
            id="country",
            options=[SelectOption(value="US"), SelectOption(value="CA")],
        ),
        FieldDescriptor(opid="#password", type="password", label="Password", name="password", id="password"),
    ]


@pytest.fixture
def contact_form(contact_fields: list[FieldDescriptor]) -> ExtractedForm:
    return ExtractedForm(
        page_title="Contact us",
        page_url="https://example.com/contact",
        form_purpose="contact form",
        fields=contact_fields,
    )


@pytest.fixture
def page(contact_form: ExtractedForm) -> FakePageSession:
    return FakePageSession(contact_form)
