import json

import pytest

import novaventa_run_order as run_order
from conftest import TIMEOUT, FakeDriver, in_stock, out_of_stock
from novaventa_errors import AuthError, ConfigError
from novaventa_models import Failure, LineItemRequest, ProductMatch, Success
from services.artifact_store import ScreenshotStore


def _items(*pairs):
    return [LineItemRequest(code=c, quantity=q) for c, q in pairs]


async def _run(driver, items, tmp_path):
    async def factory():
        return driver

    store = ScreenshotStore(tmp_path / "shots")
    result = await run_order.run_batch(items, "user", "secret", driver_factory=factory, store=store)
    return result, store


@pytest.mark.asyncio
async def test_scenario_single_item_added(tmp_path):
    driver = FakeDriver({"35505": in_stock("35505")})

    result, store = await _run(driver, _items(("35505", 1)), tmp_path)

    assert result.successes == [Success("35505", 1)]
    assert result.failures == []
    assert store.saved == []
    assert driver.close_count == 1


@pytest.mark.asyncio
async def test_scenario_not_found_takes_one_screenshot(tmp_path):
    driver = FakeDriver({"99999": None})

    result, store = await _run(driver, _items(("99999", 1)), tmp_path)

    assert result.successes == []
    assert result.failures == [Failure("99999", "Product not found")]
    assert [p.name for p in driver.screenshots] == ["not_found_99999.png"]
    assert (tmp_path / "shots").is_dir()


@pytest.mark.asyncio
async def test_scenario_mixed_batch_completes(tmp_path):
    driver = FakeDriver({"A1": in_stock("A1"), "B2": out_of_stock("B2")})

    result, _ = await _run(driver, _items(("A1", 3), ("B2", 1)), tmp_path)

    assert result.successes == [Success("A1", 3)]
    assert result.failures == [Failure("B2", "unavailable")]
    assert result.kind == "mixed"
    assert driver.count("click_and_wait_for_response") == 1
    assert driver.screenshots == []


@pytest.mark.asyncio
async def test_every_item_gets_exactly_one_outcome_in_input_order(tmp_path):
    catalog = {
        "1": in_stock("1"),
        "2": None,
        "3": TIMEOUT,
        "4": out_of_stock("4"),
        "5": in_stock("5"),
        "6": RuntimeError("boom"),
        "7": in_stock("7"),
    }
    driver = FakeDriver(catalog, add_status={"7": 503})
    items = _items(*[(str(n), n) for n in range(1, 8)] + [("1", 9)])

    result, _ = await _run(driver, items, tmp_path)

    assert result.total == len(items)
    assert result.successes == [Success("1", 1), Success("5", 5), Success("1", 9)]
    assert [f.code for f in result.failures] == ["2", "3", "4", "6", "7"]
    reasons = {f.code: f.reason for f in result.failures}
    assert reasons["2"] == "Product not found"
    assert reasons["4"] == "unavailable"
    assert reasons["6"] == "boom"
    assert "timed out" in reasons["3"]
    assert "not confirmed" in reasons["7"]
    assert [p.name for p in driver.screenshots] == [
        "not_found_2.png",
        "error_3.png",
        "error_6.png",
        "error_7.png",
    ]
    assert result.finalized


@pytest.mark.asyncio
async def test_no_info_match_is_recorded_as_failed_to_add(tmp_path):
    driver = FakeDriver({"8": ProductMatch()})

    # an empty card is still a card: locate hands it over, add_to_cart declines
    result, _ = await _run(driver, _items(("8", 1)), tmp_path)

    assert result.failures == [Failure("8", "failed to add")]


@pytest.mark.asyncio
async def test_auth_failure_propagates_and_releases_browser(tmp_path):
    driver = FakeDriver(after_login_url="https://shop.test/nautilus/es/COP/login?error=true")

    with pytest.raises(AuthError):
        await _run(driver, _items(("35505", 1)), tmp_path)

    assert driver.close_count == 1
    assert not any(c[0] == "wait_for_any_selector" for c in driver.calls)


@pytest.mark.asyncio
async def test_missing_credentials_never_start_the_browser(tmp_path):
    started = []

    async def factory():
        started.append(True)
        return FakeDriver()

    with pytest.raises(ConfigError):
        await run_order.run_batch(
            _items(("35505", 1)), "", "secret", driver_factory=factory, store=ScreenshotStore(tmp_path)
        )

    assert started == []


@pytest.mark.asyncio
async def test_session_loss_aborts_and_records_remaining(tmp_path):
    driver = FakeDriver({"1": in_stock("1"), "2": in_stock("2")}, close_page_after="1")

    result, _ = await _run(driver, _items(("1", 1), ("2", 1), ("3", 1)), tmp_path)

    assert result.aborted
    assert result.successes == [Success("1", 1)]
    assert result.failures == [Failure("2", "Browser session lost"), Failure("3", "Browser session lost")]
    assert driver.close_count == 1


def test_main_exits_nonzero_without_credentials(monkeypatch):
    monkeypatch.delenv("NOVAVENTA_USERNAME", raising=False)
    monkeypatch.delenv("NOVAVENTA_PASSWORD", raising=False)
    monkeypatch.setattr(run_order, "configure_logging", lambda *a, **k: None)

    def _fail(*args, **kwargs):
        raise AssertionError("browser must not start")

    monkeypatch.setattr(run_order, "run_batch", _fail)
    monkeypatch.setattr(run_order, "launch_driver", _fail)

    assert run_order.main(["--items", "35505=1"]) == 1


def test_main_dry_run_prints_items(monkeypatch, capsys):
    monkeypatch.setattr(run_order, "configure_logging", lambda *a, **k: None)

    assert run_order.main(["--items", "35505=1,97503=2", "--dry-run"]) == 0
    assert capsys.readouterr().out.splitlines() == ["35505=1", "97503=2"]


def test_main_auth_failure_exit_code(monkeypatch):
    monkeypatch.setenv("NOVAVENTA_USERNAME", "user")
    monkeypatch.setenv("NOVAVENTA_PASSWORD", "secret")
    monkeypatch.setattr(run_order, "configure_logging", lambda *a, **k: None)

    async def _auth_fails(*args, **kwargs):
        raise AuthError("Login rejected")

    monkeypatch.setattr(run_order, "run_batch", _auth_fails)

    assert run_order.main(["--items", "35505=1"]) == 2


def test_main_completes_with_zero_even_when_items_fail(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("NOVAVENTA_USERNAME", "user")
    monkeypatch.setenv("NOVAVENTA_PASSWORD", "secret")
    monkeypatch.setattr(run_order, "configure_logging", lambda *a, **k: None)
    monkeypatch.setattr(run_order, "SUMMARY_TO_EMAILS", "")
    monkeypatch.setattr(run_order, "GDRIVE_FOLDER_ID", "")
    monkeypatch.setattr(run_order, "SUMMARY_FILE", tmp_path / "summary.json")
    monkeypatch.setattr(run_order, "SCREENSHOTS_DIR", tmp_path / "shots")

    driver = FakeDriver({"35505": in_stock("35505"), "99999": None})

    async def factory():
        return driver

    monkeypatch.setattr(run_order, "launch_driver", lambda **kwargs: factory())

    assert run_order.main(["--items", "35505=1,99999=1"]) == 0
    assert (tmp_path / "summary.json").exists()
    out = capsys.readouterr().out
    assert '"kind": "mixed"' in out


def _patch_main(monkeypatch, tmp_path, driver, *, emails="", folder=""):
    monkeypatch.setenv("NOVAVENTA_USERNAME", "user")
    monkeypatch.setenv("NOVAVENTA_PASSWORD", "secret")
    monkeypatch.setattr(run_order, "configure_logging", lambda *a, **k: None)
    monkeypatch.setattr(run_order, "SUMMARY_TO_EMAILS", emails)
    monkeypatch.setattr(run_order, "GDRIVE_FOLDER_ID", folder)
    monkeypatch.setattr(run_order, "SUMMARY_FILE", tmp_path / "summary.json")
    monkeypatch.setattr(run_order, "SCREENSHOTS_DIR", tmp_path / "shots")

    async def factory():
        return driver

    monkeypatch.setattr(run_order, "launch_driver", lambda **kwargs: factory())


def test_main_exits_two_when_browser_session_is_lost(monkeypatch, tmp_path, capsys):
    driver = FakeDriver({"1": in_stock("1"), "2": in_stock("2")}, close_page_after="1")
    _patch_main(monkeypatch, tmp_path, driver)

    assert run_order.main(["--items", "1=1,2=1"]) == 2

    payload = json.loads(capsys.readouterr().out)
    assert payload["aborted"] is True
    assert payload["failures"] == [{"code": "2", "reason": "Browser session lost"}]
    assert driver.close_count == 1


@pytest.mark.parametrize("broken", ["save", "email", "drive"])
def test_main_summary_sink_failures_do_not_change_exit_code(monkeypatch, tmp_path, capsys, broken):
    _patch_main(monkeypatch, tmp_path, FakeDriver({"35505": in_stock("35505")}), emails="ops@x.co", folder="folder")
    attempted = []

    def _sink(name, real=None):
        def _call(*args, **kwargs):
            attempted.append(name)
            if name == broken:
                raise RuntimeError(f"{name} is down")
            return real(*args, **kwargs) if real else None

        return _call

    monkeypatch.setattr(run_order, "save_summary_json", _sink("save", run_order.save_summary_json))
    monkeypatch.setattr(run_order, "send_email", _sink("email"))
    monkeypatch.setattr(run_order, "upload_or_update_json", _sink("drive"))

    assert run_order.main(["--items", "35505=1"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["successes"] == [{"code": "35505", "quantity": 1}]
    # Drive uploads the saved file, so it is skipped when saving failed
    assert attempted == (["save", "email"] if broken == "save" else ["save", "email", "drive"])
