"""Evidence collector — captures step screenshots and console output."""

from __future__ import annotations

import base64
import logging
from pathlib import Path

from playwright.async_api import Page

logger = logging.getLogger(__name__)


def to_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


class EvidenceCollector:
    """Collects screenshots (as data URLs, optionally also PNG files) and console logs."""

    def __init__(self, evidence_dir: Path | None = None):
        self.evidence_dir = evidence_dir
        if self.evidence_dir is not None:
            self.evidence_dir.mkdir(parents=True, exist_ok=True)
        self.console_logs: list[str] = []
        self._screenshot_count = 0

    def setup_listeners(self, page: Page) -> None:
        """Attach a console listener to a page."""
        page.on("console", lambda msg: self.console_logs.append(
            f"[{msg.type}] {msg.text}"
        ))

    async def take_screenshot(self, page: Page, label: str = "") -> tuple[str | None, str | None]:
        """Capture the viewport. Returns ``(data_url, file_path)``; both None on failure."""
        self._screenshot_count += 1
        try:
            png = await page.screenshot(full_page=False)
        except Exception as e:
            logger.warning("Screenshot failed: %s", e)
            return None, None

        path = None
        if self.evidence_dir is not None:
            name = (f"screenshot_{label}_{self._screenshot_count}.png" if label
                    else f"screenshot_{self._screenshot_count}.png")
            target = self.evidence_dir / name
            try:
                target.write_bytes(png)
                path = str(target)
            except OSError as e:
                logger.warning("Could not save screenshot %s: %s", target, e)
        return to_data_url(png), path

    def save_logs(self) -> None:
        """Persist collected console output next to the screenshots."""
        if self.evidence_dir is None:
            return
        console_path = self.evidence_dir / "console.log"
        with open(console_path, "w") as f:
            f.write("\n".join(self.console_logs))
