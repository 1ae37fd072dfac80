from __future__ import annotations

import logging
from typing import Optional

from novaventa_config import HOMEPAGE_URL, SEARCH_TIMEOUT_MS, TIMEOUT_MS
from novaventa_errors import DriverTimeout, LocatorError, LocatorTimeout
from novaventa_models import ProductMatch
from novaventa_step1_login import Session

logger = logging.getLogger(__name__)

SEARCH_INPUT = "#js-site-search-input"
RESULT_CARD = ".cardproduct"
NO_RESULTS = ".search-empty"


async def locate(
    session: Session,
    code: str,
    *,
    homepage_url: str = HOMEPAGE_URL,
    timeout_ms: int = SEARCH_TIMEOUT_MS,
    nav_timeout_ms: int = TIMEOUT_MS,
) -> Optional[ProductMatch]:
    """Search the catalog for `code`.

    Returns None only when the storefront shows its "no results" block. When
    several cards come back the first one wins. Timeouts raise LocatorTimeout,
    a page with neither cards nor the empty marker raises LocatorError.
    """
    driver = session.driver
    logger.info("Searching for product code: %s", code)

    try:
        await driver.navigate(homepage_url, wait_until="networkidle", timeout_ms=nav_timeout_ms)

        await driver.wait_for_selector(SEARCH_INPUT, timeout_ms=nav_timeout_ms)
        # triple click selects whatever the previous search left in the box
        await driver.click(SEARCH_INPUT, click_count=3)
        await driver.type(SEARCH_INPUT, code)
        await driver.run_and_wait_for_navigation(
            lambda: driver.press(SEARCH_INPUT, "Enter"),
            wait_until="networkidle",
            timeout_ms=nav_timeout_ms,
        )

        await driver.wait_for_any_selector([RESULT_CARD, NO_RESULTS], timeout_ms=timeout_ms)
    except DriverTimeout as e:
        raise LocatorTimeout(code, f"Search for {code} timed out: {e}") from e

    if await driver.has_selector(NO_RESULTS):
        return None

    match = await driver.read_product_card(RESULT_CARD)
    if match is None:
        raise LocatorError(code, f"Search for {code} settled without a product card or empty-result marker.")
    return match
