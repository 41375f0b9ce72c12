"""Page-interaction sessions: the contract and a Playwright implementation."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, TypeVar, Union

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel

from ..core.config import BrowserConfig
from .browser_paths import get_user_data_dir, resolve_browser_executable

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

FIELD_EXTRACTION_SCRIPT = """
() => {
    const SKIPPED_INPUT_TYPES = new Set([
        'hidden', 'submit', 'button', 'image', 'reset', 'file', 'radio', 'color', 'range'
    ]);
    const TYPE_MAP = {
        email: 'email', tel: 'tel', url: 'url', date: 'date', number: 'number',
        checkbox: 'checkbox', password: 'password', search: 'text', text: 'text'
    };

    function text(el) {
        return el ? (el.textContent || '').replace(/\\s+/g, ' ').trim() || null : null;
    }

    function getSelector(el) {
        if (el.id) return '#' + CSS.escape(el.id);
        if (el.name) {
            const byName = `${el.tagName.toLowerCase()}[name="${el.name}"]`;
            if (document.querySelectorAll(byName).length === 1) return byName;
        }

        let path = [];
        while (el && el.nodeType === Node.ELEMENT_NODE) {
            let selector = el.nodeName.toLowerCase();
            if (el.id) {
                path.unshift('#' + CSS.escape(el.id));
                break;
            }
            let sib = el, nth = 1;
            while (sib = sib.previousElementSibling) {
                if (sib.nodeName === el.nodeName) nth++;
            }
            if (nth > 1) selector += `:nth-of-type(${nth})`;
            path.unshift(selector);
            el = el.parentNode;
        }
        return path.join(' > ');
    }

    function getLabel(el) {
        if (el.id) {
            const label = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
            if (label) return text(label);
        }
        return text(el.closest('label'));
    }

    function getAriaLabel(el) {
        if (el.getAttribute('aria-label')) return el.getAttribute('aria-label');
        const ids = el.getAttribute('aria-labelledby');
        if (!ids) return null;
        return ids.split(/\\s+/).map(id => text(document.getElementById(id))).filter(Boolean).join(' ') || null;
    }

    function getHelperText(el) {
        const ids = el.getAttribute('aria-describedby');
        if (!ids) return null;
        return ids.split(/\\s+/).map(id => text(document.getElementById(id))).filter(Boolean).join(' ') || null;
    }

    function getTopLabel(el) {
        const prev = el.previousElementSibling;
        if (prev && ['SPAN', 'DIV', 'P', 'LEGEND', 'STRONG'].includes(prev.tagName)) {
            const t = text(prev);
            if (t && t.length < 120) return t;
        }
        return null;
    }

    function fieldType(el) {
        if (el.tagName === 'TEXTAREA') return 'textarea';
        if (el.tagName === 'SELECT') return 'select';
        return TYPE_MAP[(el.type || 'text').toLowerCase()] || 'text';
    }

    const fields = [];
    const seen = new Set();
    document.querySelectorAll('input, select, textarea').forEach(el => {
        if (el.tagName === 'INPUT' && SKIPPED_INPUT_TYPES.has((el.type || '').toLowerCase())) return;
        if (el.disabled || el.readOnly) return;

        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) return;

        const selector = getSelector(el);
        if (seen.has(selector)) return;
        seen.add(selector);

        const field = {
            opid: selector,
            type: fieldType(el),
            label: getLabel(el),
            ariaLabel: getAriaLabel(el),
            labelTop: getTopLabel(el),
            placeholder: el.placeholder || null,
            helperText: getHelperText(el),
            name: el.name || null,
            id: el.id || null,
            required: el.required || el.getAttribute('aria-required') === 'true',
            currentValue: el.type === 'checkbox' ? String(el.checked) : (el.value || '')
        };
        if (el.tagName === 'SELECT') {
            field.options = Array.from(el.options).map(o => ({
                value: o.value,
                label: (o.text || '').trim() || null
            }));
        }
        fields.push(field);
    });

    const heading = document.querySelector('form h1, form h2, form legend, h1');
    const description = document.querySelector('meta[name="description"]');
    return {
        pageTitle: document.title || '',
        pageUrl: location.href,
        pageDescription: description ? description.getAttribute('content') : null,
        formPurpose: text(heading) || 'unknown',
        websiteType: 'unknown',
        fields: fields
    };
}
"""


class ActResult(BaseModel):
    """Outcome of a single page action."""

    success: bool
    message: str = ""


class ObservedElement(BaseModel):
    """An interactive element discovered on the page."""

    selector: str
    description: str
    type: Optional[str] = None


class PageSession(ABC):
    """Page-interaction collaborator consumed by the autofill engine."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Open a URL and wait for the DOM to load."""

    @abstractmethod
    async def extract(self, instruction: str, schema: type[SchemaT]) -> SchemaT:
        """Extract structured page data matching ``schema``."""

    @abstractmethod
    async def act(self, instruction: str, variables: Optional[dict[str, str]] = None) -> ActResult:
        """Perform a single action on the page."""

    @abstractmethod
    async def observe(self, instruction: str) -> list[ObservedElement]:
        """List interactive elements relevant to ``instruction``."""

    @abstractmethod
    async def close(self) -> None:
        """Release the session. Safe to call more than once."""


class PlaywrightPageSession(PageSession):
    """Page session driving a local Chromium through Playwright.

    Extraction runs a DOM script rather than a model. Actions are executed
    from the structured ``variables`` (action, selector, value); the
    natural-language instruction is only logged.
    """

    def __init__(
        self,
        playwright: Playwright,
        browser: Union[Browser, BrowserContext],
        page: Page,
        config: Optional[BrowserConfig] = None,
    ) -> None:
        self._playwright: Optional[Playwright] = playwright
        # A BrowserContext when launched with a persistent profile
        self._browser: Optional[Union[Browser, BrowserContext]] = browser
        self._page = page
        self._config = config or BrowserConfig()

    @classmethod
    async def launch(cls, config: Optional[BrowserConfig] = None) -> "PlaywrightPageSession":
        """Launch a browser and open a blank page.

        An explicit ``executable_path`` or ``channel`` wins over the preferred
        browser lookup. With a profile directory the browser is launched as a
        persistent context so cookies and logins survive between runs.

        Args:
            config: Browser configuration, defaults apply when omitted.

        Returns:
            A ready page session.
        """
        config = config or BrowserConfig()
        launch_options: dict[str, Any] = {"headless": config.headless}

        executable_path = config.executable_path
        if executable_path is None and config.channel is None:
            executable_path = resolve_browser_executable(config.preferred_browser)
        if executable_path:
            launch_options["executable_path"] = executable_path
        if config.channel:
            launch_options["channel"] = config.channel

        viewport = {"width": config.viewport_width, "height": config.viewport_height}
        persistent = config.persist_profile or config.user_data_dir is not None
        logger.info(
            f"Launching {executable_path or config.channel or 'bundled Chromium'} "
            f"(headless={config.headless}, persistent={persistent})"
        )

        playwright = await async_playwright().start()
        try:
            if persistent:
                user_data_dir = get_user_data_dir(config.user_data_dir)
                context = await playwright.chromium.launch_persistent_context(
                    str(user_data_dir), viewport=viewport, **launch_options
                )
                page = context.pages[0] if context.pages else await context.new_page()
                owner: Union[Browser, BrowserContext] = context
            else:
                browser = await playwright.chromium.launch(**launch_options)
                context = await browser.new_context(viewport=viewport)
                page = await context.new_page()
                owner = browser
        except Exception:
            await playwright.stop()
            raise
        return cls(playwright, owner, page, config)

    async def navigate(self, url: str) -> None:
        logger.info(f"Navigating to: {url}")
        await self._page.goto(url, wait_until="domcontentloaded", timeout=self._config.timeout_ms)

    async def extract(self, instruction: str, schema: type[SchemaT]) -> SchemaT:
        logger.info(f"Extracting: {instruction[:80]}")
        data = await self._page.evaluate(FIELD_EXTRACTION_SCRIPT)
        return schema.model_validate(data)

    async def act(self, instruction: str, variables: Optional[dict[str, str]] = None) -> ActResult:
        variables = variables or {}
        action = variables.get("action")
        selector = variables.get("selector")
        value = variables.get("value", "")
        logger.debug(f"Act: {instruction}")

        if not selector:
            return ActResult(success=False, message="No selector given")

        locator = self._page.locator(selector).first
        timeout = self._config.timeout_ms
        try:
            if action == "type":
                await locator.fill(value, timeout=timeout)
            elif action == "select":
                await locator.select_option(value=value, timeout=timeout)
            elif action == "check":
                await locator.check(timeout=timeout)
            elif action == "uncheck":
                await locator.uncheck(timeout=timeout)
            else:
                return ActResult(success=False, message=f"Unsupported action: {action}")
        except PlaywrightError as e:
            return ActResult(success=False, message=str(e))

        return ActResult(success=True, message=f"{action} {selector}")

    async def observe(self, instruction: str) -> list[ObservedElement]:
        logger.info(f"Observing: {instruction[:80]}")
        data: dict[str, Any] = await self._page.evaluate(FIELD_EXTRACTION_SCRIPT)
        elements = []
        for field in data.get("fields", []):
            description = (
                field.get("label")
                or field.get("ariaLabel")
                or field.get("placeholder")
                or field.get("name")
                or field["opid"]
            )
            elements.append(
                ObservedElement(selector=field["opid"], description=description, type=field.get("type"))
            )
        return elements

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self._playwright = None
