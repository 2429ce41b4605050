from __future__ import annotations

import os
from typing import Awaitable, Callable, Dict, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import InteractionError, SelectorTimeoutError
from .events import RunLog
from .models import FieldType, FormField

SELECTOR_TIMEOUT = int(1000 * float(os.environ.get("AUTOFILL_SELECTOR_TIMEOUT_SECONDS", "10")))

FieldAction = Callable[[Page, FormField, RunLog], Awaitable[None]]


async def _type_value(page: Page, field: FormField, log: RunLog) -> None:
    log.info(f'Typing "{field.value}" into {field.selector}', selector=field.selector)
    await page.type(field.selector, field.value)


async def _type_into_select(page: Page, field: FormField, log: RunLog) -> None:
    # typed like text; no native option selection
    log.info(f'Selecting "{field.value}" in {field.selector}', selector=field.selector)
    await page.type(field.selector, field.value)


async def _toggle_checkbox(page: Page, field: FormField, log: RunLog) -> None:
    # TODO: confirm whether a non-"true" value should leave the box unchecked; both branches click today.
    if field.value.lower() == "true":
        log.info(f"Checking checkbox: {field.selector}", selector=field.selector)
        await page.click(field.selector)
    else:
        log.info(f"Unchecking checkbox: {field.selector}", selector=field.selector)
        await page.click(field.selector)


async def _select_radio(page: Page, field: FormField, log: RunLog) -> None:
    log.info(f"Selecting radio: {field.selector}", selector=field.selector)
    await page.click(field.selector)


async def _click_submit(page: Page, field: FormField, log: RunLog) -> None:
    log.info(f"Clicking submit button: {field.selector}", selector=field.selector)
    await page.click(field.selector)


FIELD_ACTIONS: Dict[FieldType, FieldAction] = {
    FieldType.input: _type_value,
    FieldType.textarea: _type_value,
    FieldType.select: _type_into_select,
    FieldType.checkbox: _toggle_checkbox,
    FieldType.radio: _select_radio,
    FieldType.submit: _click_submit,
}
DEFAULT_ACTION: FieldAction = _type_value


def action_for(field_type) -> FieldAction:
    try:
        return FIELD_ACTIONS.get(FieldType(field_type), DEFAULT_ACTION)
    except ValueError:
        return DEFAULT_ACTION


class FillExecutor:
    """Fills configured fields one by one, in list order.

    A field whose selector never appears, or whose action fails, is logged and
    skipped; the remaining fields still run.
    """

    def __init__(self, log: RunLog, selector_timeout: int = SELECTOR_TIMEOUT) -> None:
        self._log = log
        self._selector_timeout = selector_timeout

    async def fill(self, page: Page, fields: Sequence[FormField]) -> int:
        self._log.info(f"Starting to fill {len(fields)} fields...")
        for field in fields:
            try:
                await self._fill_one(page, field)
            except (SelectorTimeoutError, InteractionError) as exc:
                self._log.error(f"Error filling field {field.selector}: {exc}", selector=field.selector)
            else:
                self._log.success(
                    f'Successfully filled field: {field.selector} with value: "{field.value}"',
                    selector=field.selector,
                )
        return len(fields)

    async def _fill_one(self, page: Page, field: FormField) -> None:
        field_type = getattr(field.type, "value", field.type)
        self._log.info(f"Processing field: {field.selector} ({field_type})", selector=field.selector)
        try:
            await page.wait_for_selector(field.selector, state="attached", timeout=self._selector_timeout)
        except PlaywrightTimeoutError as exc:
            raise SelectorTimeoutError(field.selector, self._selector_timeout) from exc
        except PlaywrightError as exc:
            raise InteractionError(field.selector, str(exc)) from exc
        try:
            await action_for(field.type)(page, field, self._log)
        except PlaywrightError as exc:
            raise InteractionError(field.selector, str(exc)) from exc
