from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from playwright.async_api import TimeoutError as PWTimeout
from playwright.async_api import async_playwright

from novaventa_errors import DriverTimeout
from novaventa_models import ProductMatch, StockStatus

logger = logging.getLogger(__name__)

ResponsePredicate = Callable[[str, int], bool]

# Storefront product card -> ProductMatch. Only this module knows the card markup.
_READ_CARD_JS = """
(el) => {
  const code = el.querySelector('.cardproduct__code .bold');
  const name = el.querySelector('.cardproduct__name a');
  return {
    displayedCode: code ? (code.textContent || '').trim() : '',
    productName: name ? (name.textContent || '').trim() : '',
    stockStatus: el.getAttribute('data-metriplica-prod-stock') || '',
  };
}
"""

_SET_INPUT_VALUE_JS = """
([selector, value]) => {
  const input = document.querySelector(selector);
  if (!input) {
    return false;
  }
  input.value = '';
  input.value = value;
  input.dispatchEvent(new Event('input', { bubbles: true }));
  input.dispatchEvent(new Event('change', { bubbles: true }));
  return true;
}
"""

_ANY_SELECTOR_JS = "(selectors) => selectors.some((s) => document.querySelector(s) !== null)"


class PageDriver(Protocol):
    """Everything the cart filler needs from a browser tab."""

    @property
    def url(self) -> str: ...

    async def navigate(self, url: str, *, wait_until: str = "networkidle", timeout_ms: int | None = None) -> None: ...

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None: ...

    async def wait_for_any_selector(self, selectors: Sequence[str], *, timeout_ms: int) -> None: ...

    async def has_selector(self, selector: str) -> bool: ...

    async def click(self, selector: str, *, click_count: int = 1) -> None: ...

    async def type(self, selector: str, text: str, *, delay_ms: int = 0) -> None: ...

    async def press(self, selector: str, key: str) -> None: ...

    async def run_and_wait_for_navigation(
        self, action: Callable[[], Awaitable[Any]], *, wait_until: str = "networkidle", timeout_ms: int | None = None
    ) -> None: ...

    async def read_product_card(self, selector: str) -> Optional[ProductMatch]: ...

    async def set_input_value(self, selector: str, value: str) -> None: ...

    async def click_and_wait_for_response(
        self, selector: str, predicate: ResponsePredicate, *, timeout_ms: int
    ) -> int: ...

    async def screenshot(self, path: Path) -> None: ...

    def is_closed(self) -> bool: ...

    async def close(self) -> None: ...


class PlaywrightPageDriver:
    """PageDriver over a single Playwright page.

    Owns the playwright instance, browser and context it was launched with and
    releases them all in `close()`. Playwright timeouts surface as
    `DriverTimeout`.
    """

    def __init__(self, page, *, context=None, browser=None, playwright=None, timeout_ms: int = 30000) -> None:
        self._page = page
        self._context = context
        self._browser = browser
        self._playwright = playwright
        self._timeout_ms = timeout_ms
        self._closed = False

    @property
    def url(self) -> str:
        return self._page.url or ""

    async def navigate(self, url: str, *, wait_until: str = "networkidle", timeout_ms: int | None = None) -> None:
        timeout = timeout_ms or self._timeout_ms
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout)
        except PWTimeout as e:
            raise DriverTimeout(f"navigation to {url}", timeout) from e

    async def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PWTimeout as e:
            raise DriverTimeout(f"selector {selector}", timeout_ms) from e

    async def wait_for_any_selector(self, selectors: Sequence[str], *, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_function(_ANY_SELECTOR_JS, arg=list(selectors), timeout=timeout_ms)
        except PWTimeout as e:
            raise DriverTimeout(f"any of {', '.join(selectors)}", timeout_ms) from e

    async def has_selector(self, selector: str) -> bool:
        return await self._page.query_selector(selector) is not None

    async def click(self, selector: str, *, click_count: int = 1) -> None:
        try:
            await self._page.click(selector, click_count=click_count, timeout=self._timeout_ms)
        except PWTimeout as e:
            raise DriverTimeout(f"click on {selector}", self._timeout_ms) from e

    async def type(self, selector: str, text: str, *, delay_ms: int = 0) -> None:
        try:
            await self._page.locator(selector).first.press_sequentially(text, delay=delay_ms, timeout=self._timeout_ms)
        except PWTimeout as e:
            raise DriverTimeout(f"typing into {selector}", self._timeout_ms) from e

    async def press(self, selector: str, key: str) -> None:
        try:
            await self._page.press(selector, key, timeout=self._timeout_ms)
        except PWTimeout as e:
            raise DriverTimeout(f"key {key} on {selector}", self._timeout_ms) from e

    async def run_and_wait_for_navigation(
        self, action: Callable[[], Awaitable[Any]], *, wait_until: str = "networkidle", timeout_ms: int | None = None
    ) -> None:
        timeout = timeout_ms or self._timeout_ms
        try:
            async with self._page.expect_navigation(wait_until=wait_until, timeout=timeout):
                await action()
        except PWTimeout as e:
            raise DriverTimeout("navigation", timeout) from e

    async def read_product_card(self, selector: str) -> Optional[ProductMatch]:
        card = self._page.locator(selector).first
        if await card.count() == 0:
            return None
        raw = await card.evaluate(_READ_CARD_JS)
        if not raw:
            return ProductMatch()
        stock_raw = str(raw.get("stockStatus") or "").strip()
        return ProductMatch(
            displayed_code=str(raw.get("displayedCode") or "").strip(),
            name=str(raw.get("productName") or "").strip(),
            stock_status=StockStatus.parse(stock_raw),
            stock_raw=stock_raw,
        )

    async def set_input_value(self, selector: str, value: str) -> None:
        ok = await self._page.evaluate(_SET_INPUT_VALUE_JS, [selector, value])
        if not ok:
            raise RuntimeError(f"Input not found: {selector}")

    async def click_and_wait_for_response(
        self, selector: str, predicate: ResponsePredicate, *, timeout_ms: int
    ) -> int:
        clicked = False
        try:
            async with self._page.expect_response(
                lambda response: predicate(response.url, response.status), timeout=timeout_ms
            ) as response_info:
                await self._page.click(selector, timeout=timeout_ms)
                clicked = True
            response = await response_info.value
        except PWTimeout as e:
            if not clicked:
                raise DriverTimeout(f"click on {selector}", timeout_ms) from e
            raise DriverTimeout(f"response after clicking {selector}", timeout_ms) from e
        return response.status

    async def screenshot(self, path: Path) -> None:
        await self._page.screenshot(path=str(path), full_page=True)

    def is_closed(self) -> bool:
        return self._closed or self._page.is_closed()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._context is not None:
                await self._context.close()
        except Exception as e:
            logger.debug("Context close failed: %s", e)
        try:
            if self._browser is not None:
                await self._browser.close()
        except Exception as e:
            logger.debug("Browser close failed: %s", e)
        try:
            if self._playwright is not None:
                await self._playwright.stop()
        except Exception as e:
            logger.debug("Playwright stop failed: %s", e)


async def launch_driver(*, headless: bool = False, timeout_ms: int = 30000) -> PlaywrightPageDriver:
    p = await async_playwright().start()
    browser = None
    try:
        browser = await p.chromium.launch(headless=headless)
        context = await browser.new_context()
        page = await context.new_page()
    except Exception:
        if browser is not None:
            await browser.close()
        await p.stop()
        raise
    page.set_default_timeout(timeout_ms)
    logger.info("Browser launched (headless=%s).", headless)
    return PlaywrightPageDriver(page, context=context, browser=browser, playwright=p, timeout_ms=timeout_ms)
