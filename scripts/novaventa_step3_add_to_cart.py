from __future__ import annotations

import logging
from urllib.parse import urlparse

from novaventa_config import ADD_TIMEOUT_MS, TIMEOUT_MS
from novaventa_driver import ResponsePredicate
from novaventa_errors import AddRejected, DriverTimeout
from novaventa_models import ProductMatch
from novaventa_step1_login import Session

logger = logging.getLogger(__name__)

QTY_INPUT = "input.qtyList"
ADD_BUTTON = "button.btn.btn-primary.btn-block.js-enable-btn"
CART_PATH_MARKER = "/cart"


def is_cart_confirmation(url: str, status: int) -> bool:
    """Completed cart mutation: a 2xx response whose path mentions /cart."""
    path = urlparse(url or "").path
    return CART_PATH_MARKER in path and 200 <= int(status) < 300


async def add_to_cart(
    session: Session,
    match: ProductMatch | None,
    code: str,
    quantity: int,
    *,
    confirm: ResponsePredicate = is_cart_confirmation,
    timeout_ms: int = ADD_TIMEOUT_MS,
    selector_timeout_ms: int = TIMEOUT_MS,
) -> bool:
    # The first response accepted by `confirm` counts as the confirmation, even
    # if the storefront fires several cart requests for one click.
    if match is None or not match.has_info:
        logger.warning("No product information found for code %s.", code)
        return False

    logger.info(
        "Found product: Code - %s, Name - %s, Stock Status - %s",
        match.displayed_code,
        match.name,
        match.stock_raw or match.stock_status.value,
    )
    if match.displayed_code and match.displayed_code != code:
        logger.warning("Displayed code %s differs from requested code %s.", match.displayed_code, code)

    if not match.in_stock:
        logger.warning("Product %s is unavailable.", code)
        return False

    driver = session.driver
    await driver.wait_for_selector(QTY_INPUT, timeout_ms=selector_timeout_ms)
    await driver.set_input_value(QTY_INPUT, str(quantity))

    try:
        await driver.click_and_wait_for_response(ADD_BUTTON, confirm, timeout_ms=timeout_ms)
    except DriverTimeout as e:
        if e.action == f"click on {ADD_BUTTON}":
            raise AddRejected(code, f"Add button for {code} was not clickable within {timeout_ms} ms") from e
        raise AddRejected(code, f"Add to cart for {code} was not confirmed within {timeout_ms} ms") from e

    logger.info("Product %s added to cart with quantity %s.", code, quantity)
    return True
