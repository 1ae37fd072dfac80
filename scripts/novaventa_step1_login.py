from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlparse

from novaventa_config import LOGIN_URL, TIMEOUT_MS, TYPE_DELAY_MS
from novaventa_driver import PageDriver
from novaventa_errors import AuthError, ConfigError

logger = logging.getLogger(__name__)

USERNAME_INPUT = "#j_username"
PASSWORD_INPUT = "#j_password"
LOGIN_BUTTON = "#btn-login"


class Session:
    """Authenticated browser tab. `close()` releases the browser exactly once."""

    def __init__(self, driver: PageDriver, username: str) -> None:
        self.driver = driver
        self.username = username
        self._closed = False

    def is_alive(self) -> bool:
        return not self._closed and not self.driver.is_closed()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.driver.close()
        logger.info("Browser session closed.")


def check_credentials(username: str, password: str) -> None:
    if not (username or "").strip() or not (password or "").strip():
        raise ConfigError("Username or password is empty.")


def _login_rejected(url: str) -> bool:
    # Hybris sends failed logins back to /login?error=true
    parsed = urlparse(url or "")
    return parsed.path.rstrip("/").endswith("/login") and "error" in parse_qs(parsed.query, keep_blank_values=True)


async def authenticate(
    driver: PageDriver,
    username: str,
    password: str,
    *,
    login_url: str = LOGIN_URL,
    timeout_ms: int = TIMEOUT_MS,
    type_delay_ms: int = TYPE_DELAY_MS,
) -> Session:
    check_credentials(username, password)

    try:
        logger.info("Navigating to the login page.")
        await driver.navigate(login_url, wait_until="networkidle", timeout_ms=timeout_ms)

        logger.info("Entering login credentials.")
        await driver.wait_for_selector(USERNAME_INPUT, timeout_ms=timeout_ms)
        await driver.type(USERNAME_INPUT, username, delay_ms=type_delay_ms)
        await driver.wait_for_selector(PASSWORD_INPUT, timeout_ms=timeout_ms)
        await driver.type(PASSWORD_INPUT, password, delay_ms=type_delay_ms)

        logger.info("Submitting login form.")
        await driver.run_and_wait_for_navigation(
            lambda: driver.click(LOGIN_BUTTON),
            wait_until="networkidle",
            timeout_ms=timeout_ms,
        )
    except AuthError:
        raise
    except Exception as e:
        raise AuthError(f"Login failed: {e}") from e

    if _login_rejected(driver.url):
        raise AuthError(f"Login rejected by the storefront (url={driver.url}).")

    session = Session(driver, username)
    logger.info("Logged in successfully as %s.", session.username)
    return session
