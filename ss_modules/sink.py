"""
Screenshot Stitcher Sink Module

Writes fragments and composites to disk. One directory per capture session;
fragments written before a failure are kept for debugging.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import Fragment

logger = logging.getLogger(__name__)


class FragmentSink:
    """Filesystem sink for one capture session"""

    def __init__(self, root_dir, session_name: Optional[str] = None):
        self.root_dir = Path(root_dir)
        self.session_name = session_name or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.session_dir = self.root_dir / self.session_name

    def _ensure_dir(self) -> None:
        if not self.session_dir.exists():
            logger.info(f"[FragmentSink] Creating screenshots directory {self.session_dir}")
            self.session_dir.mkdir(parents=True, exist_ok=True)

    def save_fragment(self, fragment: Fragment) -> Path:
        self._ensure_dir()
        path = self.session_dir / f"screenshot_{fragment.index}.png"
        path.write_bytes(fragment.data)
        logger.info(f"[FragmentSink] Saved {path.name}")
        return path

    def save_composite(self, image: bytes, filename: str = "screenshot.png") -> Path:
        self._ensure_dir()
        path = self.session_dir / filename
        path.write_bytes(image)
        logger.info(f"[FragmentSink] Saved composite {path}")
        return path
