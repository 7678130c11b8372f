import asyncio

import numpy as np
import pytest

from screenshot_stitcher import ScreenshotStitcher
from ss_modules import (
    CaptureCancelledError,
    CaptureError,
    CaptureState,
    CropBoundsError,
    FragmentSink,
    MeasurementError,
    RemoteChannelError,
    SinkWriteError,
    image_size,
)
from ss_modules.visibility import HIDE_ELEMENTS_SCRIPT, SHOW_ELEMENTS_SCRIPT
from fakes import CHROME_BLUE, FakePage, blue_channel, decode_rows


class HiddenTrackingPage(FakePage):
    """Records whether elements were hidden at each snapshot."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.hidden_at_snapshot = []

    async def screenshot(self):
        self.hidden_at_snapshot.append(self.hidden)
        return await super().screenshot()


def _assert_seamless(image: bytes, total_rows: int):
    rows = decode_rows(image)
    assert len(rows) == total_rows
    assert np.array_equal(rows, np.arange(total_rows))
    assert not (blue_channel(image) == CHROME_BLUE).any()


@pytest.mark.asyncio
async def test_reference_scenario_2000_800_density_2(fast_session):
    page = FakePage(total_height=2000, viewport_height=800, density=2.0)
    stitcher = ScreenshotStitcher(page, fast_session(density=2.0))

    result = await stitcher.capture_full_page()
    report = result.report

    assert report.step_count == 3
    assert report.scroll_amounts == [800, 800]
    assert report.step_advances == [800, 800, 400]
    assert report.fragments[-1].overlap_trim == 400
    assert [f.height for f in report.fragments] == [1600, 1600, 800]
    assert (result.width, result.height) == (4, 4000)
    _assert_seamless(result.image, 4000)


@pytest.mark.asyncio
async def test_states_visited_in_order(fast_session):
    page = FakePage(total_height=2000, viewport_height=800)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    report = await stitcher.capture_fragments()

    assert report.states == [
        CaptureState.INIT,
        CaptureState.MEASURING,
        CaptureState.CAPTURE_STEP,
        CaptureState.SCROLLING,
        CaptureState.CAPTURE_STEP,
        CaptureState.SCROLLING,
        CaptureState.CAPTURE_STEP,
        CaptureState.RESTORING,
        CaptureState.DONE,
    ]
    assert stitcher.state == CaptureState.DONE


@pytest.mark.asyncio
async def test_chrome_band_is_derived_from_snapshot(fast_session):
    page = FakePage(total_height=2000, viewport_height=800, density=2.0, chrome_height=56)
    stitcher = ScreenshotStitcher(page, fast_session(density=2.0))

    result = await stitcher.capture_full_page()

    assert all(f.chrome_trim == 56 for f in result.report.fragments)
    _assert_seamless(result.image, 4000)


@pytest.mark.asyncio
async def test_configured_chrome_band(fast_session):
    page = FakePage(total_height=2500, viewport_height=640, density=3.0, chrome_height=24)
    stitcher = ScreenshotStitcher(page, fast_session(density=3.0, chrome_band_height=24))

    result = await stitcher.capture_full_page()

    _assert_seamless(result.image, 7500)


@pytest.mark.asyncio
async def test_exact_multiple_has_no_overlap_trim(fast_session):
    page = FakePage(total_height=2400, viewport_height=800, density=2.0)
    stitcher = ScreenshotStitcher(page, fast_session(density=2.0))

    result = await stitcher.capture_full_page()

    assert len(result.report.fragments) == 3
    assert result.report.fragments[-1].overlap_trim == 0
    _assert_seamless(result.image, 4800)


@pytest.mark.asyncio
async def test_single_step_page_never_scrolls(fast_session):
    page = FakePage(total_height=600, viewport_height=800)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    result = await stitcher.capture_full_page(hidden_selectors="header")
    report = result.report

    assert len(report.fragments) == 1
    assert report.fragments[0].height == 800
    # The only fragment is kept whole: there is no earlier fragment to overlap
    assert report.fragments[0].overlap_trim == 0
    assert report.step_advances == [800]
    assert (result.width, result.height) == (4, 800)
    _assert_seamless(result.image, 800)
    assert page.scroll_requests == []
    assert report.scroll_amounts == []
    assert HIDE_ELEMENTS_SCRIPT not in page.scripts
    assert SHOW_ELEMENTS_SCRIPT in page.scripts


@pytest.mark.asyncio
async def test_stuck_scroll_ends_early_without_error(fast_session):
    page = FakePage(total_height=4000, viewport_height=800, max_scroll=800)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    report = await stitcher.capture_fragments()

    assert report.step_count == 5
    assert len(report.fragments) == 2
    assert report.exhausted is True
    assert report.states[-1] == CaptureState.DONE


@pytest.mark.asyncio
async def test_elements_hidden_after_first_scroll_and_restored(fast_session):
    page = HiddenTrackingPage(total_height=2000, viewport_height=800)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    report = await stitcher.capture_fragments(hidden_selectors="header, .sticky")

    assert page.hidden_at_snapshot == [False, True, True]
    assert page.hidden is False
    assert report.hidden_confirmed is True
    assert report.restored_confirmed is True


@pytest.mark.asyncio
async def test_visibility_timeout_does_not_abort_capture(fast_session):
    page = FakePage(total_height=2000, viewport_height=800, confirm_visibility=False)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    report = await stitcher.capture_fragments(hidden_selectors="header")

    assert len(report.fragments) == 3
    assert report.hidden_confirmed is False
    assert report.restored_confirmed is False
    assert report.states[-1] == CaptureState.DONE


@pytest.mark.asyncio
async def test_snapshot_failure_aborts_and_restores(fast_session, tmp_path):
    page = FakePage(total_height=2000, viewport_height=800)
    page.fail_screenshot_at = 2
    sink = FragmentSink(tmp_path, session_name="failed")
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0), sink=sink)

    with pytest.raises(CaptureError) as exc_info:
        await stitcher.capture_fragments(hidden_selectors="header")

    assert exc_info.value.details["step"] == 2
    assert page.hidden is False
    assert stitcher.states[-2:] == [CaptureState.RESTORING, CaptureState.FAILED]
    # Fragments written before the failure stay on disk
    assert [p.name for p in sorted((tmp_path / "failed").iterdir())] == ["screenshot_1.png"]


@pytest.mark.asyncio
async def test_restore_failure_does_not_mask_original_error(fast_session):
    page = FakePage(total_height=2000, viewport_height=800)
    page.fail_screenshot_at = 3
    page.fail_script = SHOW_ELEMENTS_SCRIPT
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    with pytest.raises(CaptureError):
        await stitcher.capture_fragments(hidden_selectors="header")
    assert stitcher.state == CaptureState.FAILED


@pytest.mark.asyncio
async def test_restore_failure_after_success_is_fatal(fast_session):
    page = FakePage(total_height=2000, viewport_height=800)
    page.fail_script = SHOW_ELEMENTS_SCRIPT
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    with pytest.raises(RemoteChannelError):
        await stitcher.capture_fragments(hidden_selectors="header")
    assert stitcher.state == CaptureState.FAILED


@pytest.mark.asyncio
async def test_measurement_failure(fast_session):
    page = FakePage(total_height=0, viewport_height=800)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    with pytest.raises(MeasurementError):
        await stitcher.capture_full_page()
    assert page.screenshot_offsets == []
    assert stitcher.states == [
        CaptureState.INIT,
        CaptureState.MEASURING,
        CaptureState.RESTORING,
        CaptureState.FAILED,
    ]


@pytest.mark.asyncio
async def test_cancellation_between_steps(fast_session):
    cancel_event = asyncio.Event()

    class CancellingPage(FakePage):
        async def screenshot(self):
            cancel_event.set()
            return await super().screenshot()

    page = CancellingPage(total_height=2000, viewport_height=800)
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0))

    with pytest.raises(CaptureCancelledError) as exc_info:
        await stitcher.capture_fragments(cancel_event=cancel_event)

    assert exc_info.value.details["step"] == 2
    assert len(page.screenshot_offsets) == 1
    assert stitcher.state == CaptureState.FAILED


@pytest.mark.asyncio
async def test_density_falls_back_to_device_pixel_ratio(fast_session):
    page = FakePage(total_height=1000, viewport_height=500, density=2.0, device_pixel_ratio=2.0)
    stitcher = ScreenshotStitcher(page, fast_session())

    result = await stitcher.capture_full_page()

    assert result.report.density == 2.0
    _assert_seamless(result.image, 2000)


@pytest.mark.asyncio
async def test_density_defaults_to_one(fast_session):
    page = FakePage(total_height=1000, viewport_height=500)
    stitcher = ScreenshotStitcher(page, fast_session())

    report = await stitcher.capture_fragments()

    assert report.density == 1.0


@pytest.mark.asyncio
async def test_wrong_density_fails_crop_bounds(fast_session):
    # Snapshot rendered at 1.0 but session claims 4.0: the snapshot is shorter than the viewport
    page = FakePage(total_height=1300, viewport_height=1000, density=1.0)
    stitcher = ScreenshotStitcher(page, fast_session(density=4.0))

    with pytest.raises(CropBoundsError):
        await stitcher.capture_fragments()


@pytest.mark.asyncio
async def test_page_pixel_ratio_wins_over_mismatched_session_density(fast_session):
    # Device detection guessed 2.0, the phone renders at 3.0
    page = FakePage(total_height=2000, viewport_height=800, density=3.0, device_pixel_ratio=3.0)
    stitcher = ScreenshotStitcher(page, fast_session(density=2.0))

    result = await stitcher.capture_full_page()

    assert result.report.density == 3.0
    assert all(f.chrome_trim == 0 for f in result.report.fragments)
    assert (result.width, result.height) == (4, 6000)
    _assert_seamless(result.image, 6000)


@pytest.mark.asyncio
async def test_too_low_density_fails_instead_of_trimming_content(fast_session):
    # No page ratio to fall back on: the extra rows must not be taken for browser chrome
    page = FakePage(total_height=2000, viewport_height=800, density=3.0)
    stitcher = ScreenshotStitcher(page, fast_session(density=2.0))

    with pytest.raises(CropBoundsError) as exc_info:
        await stitcher.capture_full_page()

    assert exc_info.value.details == {"image_height": 2400, "trim_rows": 1602}
    assert len(page.screenshot_offsets) == 1
    assert stitcher.state == CaptureState.FAILED


@pytest.mark.asyncio
async def test_matching_densities_keep_the_session_value(fast_session):
    page = FakePage(total_height=1000, viewport_height=500, density=2.0, device_pixel_ratio=2.004)
    stitcher = ScreenshotStitcher(page, fast_session(density=2.0))

    result = await stitcher.capture_full_page()

    assert result.report.density == 2.0
    _assert_seamless(result.image, 2000)


@pytest.mark.asyncio
async def test_unwritable_sink_fails_the_capture(fast_session, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    page = FakePage(total_height=2000, viewport_height=800)
    sink = FragmentSink(blocker, session_name="run")
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0), sink=sink)

    with pytest.raises(SinkWriteError) as exc_info:
        await stitcher.capture_full_page(hidden_selectors="header")

    assert exc_info.value.code == "SINK_WRITE_ERROR"
    assert exc_info.value.message.startswith("Failed saving fragment 1:")
    assert isinstance(exc_info.value.__cause__, OSError)
    assert page.hidden is False
    assert stitcher.state == CaptureState.FAILED


@pytest.mark.asyncio
async def test_sink_receives_fragments_and_composite(fast_session, tmp_path):
    page = FakePage(total_height=2000, viewport_height=800)
    sink = FragmentSink(tmp_path, session_name="run")
    stitcher = ScreenshotStitcher(page, fast_session(density=1.0), sink=sink)

    result = await stitcher.capture_full_page()

    names = sorted(p.name for p in (tmp_path / "run").iterdir())
    assert names == ["screenshot.png", "screenshot_1.png", "screenshot_2.png", "screenshot_3.png"]
    assert result.path == tmp_path / "run" / "screenshot.png"
    assert image_size(result.path.read_bytes()) == (4, 2000)


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(8))
@pytest.mark.parametrize("total, viewport, density, chrome", [
    (2000, 800, 2.0, 0),
    (2500, 640, 3.0, 24),
    (1234, 500, 1.5, 40),
    (3000, 1000, 1.0, 0),
])
async def test_laggy_scroll_sweep_stays_seamless(fast_session, seed, total, viewport, density, chrome):
    page = FakePage(
        total_height=total,
        viewport_height=viewport,
        density=density,
        chrome_height=chrome,
        lag=5,
        seed=seed,
    )
    stitcher = ScreenshotStitcher(page, fast_session(density=density))

    result = await stitcher.capture_full_page(hidden_selectors="header")

    assert result.report.exhausted is False
    assert len(result.report.fragments) == result.report.step_count
    _assert_seamless(result.image, int(round(total * density)))
