import pytest

from ss_modules import ScrollDriver, ScrollTimeoutError, poll_until, wait_for_page_load
from ss_modules import PageLoadTimeoutError, PollTimeout
from ss_modules.device import SCROLL_POSITION_SCRIPT
from fakes import FakePage


def _driver(page, timeout=2.0):
    return ScrollDriver(page, poll_interval=0.001, timeout=timeout)


class RunawayPage(FakePage):
    """Position keeps changing on every read."""

    async def execute_script(self, script, *args):
        if script == SCROLL_POSITION_SCRIPT:
            self.position += 1
            return self.position
        return await super().execute_script(script, *args)


@pytest.mark.asyncio
async def test_scroll_and_settle_moves_by_amount():
    page = FakePage(3000, 800)
    driver = _driver(page)

    offset, exhausted = await driver.scroll_and_settle(800)

    assert offset == 800
    assert exhausted is False
    assert driver.state.offset == 800
    assert driver.state.last_offset == 0


@pytest.mark.asyncio
async def test_laggy_scroll_settles_at_target():
    page = FakePage(3000, 800, lag=6, seed=3)
    driver = _driver(page)

    for expected in (700, 1400, 2100):
        offset, exhausted = await driver.scroll_and_settle(700)
        assert offset == expected
        assert exhausted is False


@pytest.mark.asyncio
async def test_unchanged_position_reports_exhaustion():
    page = FakePage(3000, 800, max_scroll=500)
    driver = _driver(page)

    offset, exhausted = await driver.scroll_and_settle(800)
    assert (offset, exhausted) == (500, False)

    offset, exhausted = await driver.scroll_and_settle(800)
    assert (offset, exhausted) == (500, True)


@pytest.mark.asyncio
async def test_runaway_scroll_times_out():
    driver = _driver(RunawayPage(3000, 800), timeout=0.05)

    with pytest.raises(ScrollTimeoutError) as exc_info:
        await driver.wait_for_stable()
    assert exc_info.value.fatal is True
    assert exc_info.value.details["last_offset"] is not None


@pytest.mark.asyncio
async def test_non_numeric_position_reads_as_zero():
    class OddPage(FakePage):
        async def execute_script(self, script, *args):
            return "n/a"

    assert await _driver(OddPage(100, 50)).get_position() == 0.0


@pytest.mark.asyncio
async def test_scroll_to_top_resets_offset():
    page = FakePage(3000, 800)
    driver = _driver(page)
    await driver.scroll_and_settle(1000)

    assert await driver.scroll_to_top() == 0
    assert driver.state.offset == 0


@pytest.mark.asyncio
async def test_poll_until_samples_at_least_once_with_zero_timeout():
    samples = []

    async def probe():
        samples.append(1)
        return len(samples)

    with pytest.raises(PollTimeout) as exc_info:
        await poll_until(probe, lambda value: value > 5, timeout=0, interval=0.001)
    assert exc_info.value.samples == 1
    assert exc_info.value.last_value == 1


@pytest.mark.asyncio
async def test_wait_for_page_load_times_out_on_loading_document():
    class LoadingPage:
        async def execute_script(self, script, *args):
            return "loading"

    with pytest.raises(PageLoadTimeoutError) as exc_info:
        await wait_for_page_load(LoadingPage(), url="http://example.com", timeout=0.02, interval=0.001)
    assert exc_info.value.details["url"] == "http://example.com"


@pytest.mark.asyncio
async def test_wait_for_page_load_returns_when_complete():
    await wait_for_page_load(FakePage(100, 50), url="http://example.com", timeout=0.1, interval=0.001)
