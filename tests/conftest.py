import pytest

from ss_modules import CaptureSession

STITCH_ENV_VARS = (
    "STITCH_DENSITY",
    "STITCH_POLL_INTERVAL",
    "STITCH_SCROLL_TIMEOUT",
    "STITCH_VISIBILITY_TIMEOUT",
    "STITCH_PAGE_LOAD_TIMEOUT",
    "STITCH_CHROME_BAND_HEIGHT",
)


@pytest.fixture(autouse=True)
def clean_stitch_env(monkeypatch):
    for name in STITCH_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fast_session():
    """Session with short polls so waits and timeouts finish quickly."""
    def _make(**overrides):
        values = {
            "poll_interval": 0.001,
            "scroll_timeout": 2.0,
            "visibility_timeout": 0.05,
        }
        values.update(overrides)
        return CaptureSession(**values)
    return _make
