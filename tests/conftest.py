from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from novaventa_errors import DriverTimeout
from novaventa_models import ProductMatch, StockStatus
from novaventa_step1_login import LOGIN_BUTTON, USERNAME_INPUT
from novaventa_step2_search import NO_RESULTS, RESULT_CARD, SEARCH_INPUT

TIMEOUT = "timeout"
CART_URL = "https://shop.test/nautilus/es/COP/cart/add"


def in_stock(code: str, name: str = "Crema") -> ProductMatch:
    return ProductMatch(displayed_code=code, name=name, stock_status=StockStatus.IN_STOCK, stock_raw="inStock")


def out_of_stock(code: str, name: str = "Crema") -> ProductMatch:
    return ProductMatch(displayed_code=code, name=name, stock_status=StockStatus.OUT_OF_STOCK, stock_raw="outOfStock")


class FakeDriver:
    """In-memory PageDriver.

    `catalog` maps a searched code to a ProductMatch (card shown), None (empty
    result marker shown), TIMEOUT (search never settles) or an exception
    instance (raised while waiting for results).
    """

    def __init__(
        self,
        catalog: Optional[Dict[str, Any]] = None,
        *,
        add_status: Optional[Dict[str, int]] = None,
        after_login_url: str = "https://shop.test/nautilus/es/COP/",
        login_error: Optional[Exception] = None,
        close_page_after: Optional[str] = None,
        unclickable: Optional[List[str]] = None,
    ) -> None:
        self.catalog = catalog or {}
        self.add_status = add_status or {}
        self.after_login_url = after_login_url
        self.login_error = login_error
        self.close_page_after = close_page_after
        self.unclickable = set(unclickable or ())
        self.url = "about:blank"
        self.calls: List[tuple] = []
        self.screenshots: List[Path] = []
        self.quantities: List[str] = []
        self.close_count = 0
        self.query = ""
        self._page_closed = False

    async def navigate(self, url, *, wait_until="networkidle", timeout_ms=None):
        self.calls.append(("navigate", url))
        self.url = url

    async def wait_for_selector(self, selector, *, timeout_ms):
        self.calls.append(("wait_for_selector", selector))
        if selector == USERNAME_INPUT and self.login_error is not None:
            raise self.login_error

    async def wait_for_any_selector(self, selectors, *, timeout_ms):
        self.calls.append(("wait_for_any_selector", tuple(selectors)))
        entry = self.catalog.get(self.query)
        if entry == TIMEOUT:
            raise DriverTimeout("any of results", timeout_ms)
        if isinstance(entry, Exception):
            raise entry

    async def has_selector(self, selector):
        if selector == NO_RESULTS:
            return self.query in self.catalog and self.catalog[self.query] is None
        return False

    async def click(self, selector, *, click_count=1):
        self.calls.append(("click", selector, click_count))
        if selector == LOGIN_BUTTON:
            self.url = self.after_login_url

    async def type(self, selector, text, *, delay_ms=0):
        self.calls.append(("type", selector, text))
        if selector == SEARCH_INPUT:
            self.query = text

    async def press(self, selector, key):
        self.calls.append(("press", selector, key))

    async def run_and_wait_for_navigation(self, action, *, wait_until="networkidle", timeout_ms=None):
        await action()

    async def read_product_card(self, selector):
        assert selector == RESULT_CARD
        entry = self.catalog.get(self.query)
        if isinstance(entry, ProductMatch):
            return entry
        return None

    async def set_input_value(self, selector, value):
        self.calls.append(("set_input_value", selector, value))
        self.quantities.append(value)

    async def click_and_wait_for_response(self, selector, predicate, *, timeout_ms):
        self.calls.append(("click_and_wait_for_response", selector))
        if self.query in self.unclickable:
            raise DriverTimeout(f"click on {selector}", timeout_ms)
        status = self.add_status.get(self.query, 200)
        if not predicate(CART_URL, status):
            raise DriverTimeout(f"response after clicking {selector}", timeout_ms)
        if self.close_page_after == self.query:
            self._page_closed = True
        return status

    async def screenshot(self, path):
        self.screenshots.append(Path(path))

    def is_closed(self):
        return self._page_closed or self.close_count > 0

    async def close(self):
        self.close_count += 1

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)


@pytest.fixture
def fake_driver_factory():
    def _make(*args, **kwargs) -> FakeDriver:
        return FakeDriver(*args, **kwargs)

    return _make
