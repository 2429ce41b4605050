from __future__ import annotations

import base64
from typing import Optional

from playwright.async_api import Page

from .events import RunLog
from .models import AutomationResult

COMPLETED_MESSAGE = "Form automation completed successfully. Browser remains open."


async def capture_result(
    page: Page,
    fields_processed: int,
    log: RunLog,
    session_id: Optional[str] = None,
) -> AutomationResult:
    log.info("Taking screenshot...")
    png = await page.screenshot(full_page=True, type="png")
    log.success("Screenshot captured")
    log.info("Form filling completed. Browser will remain open for manual inspection.")
    return AutomationResult(
        message=COMPLETED_MESSAGE,
        fields_processed=fields_processed,
        screenshot=base64.b64encode(png).decode(),
        session_id=session_id,
        logs=log.events,
    )
