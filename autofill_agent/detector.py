from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .css_selectors import synthesize_selector
from .errors import DetectionError
from .models import DetectedField, ElementSnapshot, FieldType

logger = logging.getLogger(__name__)

SCANNED_TAGS = ("input", "textarea", "select", "button")
SUBMIT_BUTTON_KEYWORDS = ("submit", "login", "sign in", "register", "create", "save", "send")

# Collects raw element facts; selectors and field types are derived in Python.
SCAN_SCRIPT = """
(tags) => {
    const labelFor = (el) => {
        const id = el.getAttribute('id');
        if (id) {
            const byFor = Array.from(document.querySelectorAll('label'))
                .find((label) => label.getAttribute('for') === id);
            if (byFor) return (byFor.textContent || '').trim();
        }
        const parent = el.parentElement;
        if (parent) {
            const nested = parent.querySelector('label');
            if (nested) return (nested.textContent || '').trim();
        }
        const prev = el.previousElementSibling;
        if (prev && prev.tagName === 'LABEL') return (prev.textContent || '').trim();
        return '';
    };
    const sameTagIndex = (el) => {
        const parent = el.parentElement;
        if (!parent) return 1;
        const siblings = Array.from(parent.children).filter((child) => child.tagName === el.tagName);
        return siblings.indexOf(el) + 1;
    };
    const scanned = [];
    for (const tag of tags) {
        for (const el of document.querySelectorAll(tag)) {
            scanned.push({
                tag: el.tagName.toLowerCase(),
                id: el.getAttribute('id'),
                name: el.getAttribute('name'),
                classes: (el.getAttribute('class') || '').split(/\\s+/).filter((c) => c),
                type: el.getAttribute('type'),
                text: (el.textContent || '').trim(),
                placeholder: el.getAttribute('placeholder'),
                label: labelFor(el),
                sameTagIndex: sameTagIndex(el),
                hasParent: el.parentElement !== null,
            });
        }
    }
    return scanned;
}
"""


def classify(element: ElementSnapshot) -> Optional[FieldType]:
    """Map a scanned element to a field type, or None when it is not a candidate."""
    tag = element.tag.lower()
    if tag == "textarea":
        return FieldType.textarea
    if tag == "select":
        return FieldType.select
    if tag == "button":
        if (element.type or "") == "submit" or is_submit_text(element.text):
            return FieldType.submit
        return None
    if tag == "input":
        input_type = element.type or "text"
        if input_type == "checkbox":
            return FieldType.checkbox
        if input_type == "radio":
            return FieldType.radio
        if input_type in ("submit", "button"):
            return FieldType.submit
        return FieldType.input
    return None


def is_submit_text(text: str) -> bool:
    lowered = text.strip().lower()
    return any(keyword in lowered for keyword in SUBMIT_BUTTON_KEYWORDS)


def build_fields(elements: Iterable[ElementSnapshot]) -> List[DetectedField]:
    fields: List[DetectedField] = []
    for element in elements:
        field_type = classify(element)
        if field_type is None:
            continue
        tag = element.tag.lower()
        fields.append(
            DetectedField(
                id=f"field-{len(fields) + 1}",
                selector=synthesize_selector(element),
                value=element.text.strip() if tag == "button" else "",
                type=field_type,
                name=element.name or "",
                # selects and buttons carry no placeholder
                placeholder=(element.placeholder or "") if tag in ("input", "textarea") else None,
                label=element.label,
            )
        )
    return fields


async def detect_fields(page: Page) -> List[DetectedField]:
    """Scan the loaded page for fillable controls.

    Inputs come first, then textareas, selects and finally the buttons that
    look like submit buttons; ids are numbered across all kinds in that order.
    """
    try:
        raw: List[Dict[str, Any]] = await page.evaluate(SCAN_SCRIPT, list(SCANNED_TAGS))
    except PlaywrightError as exc:
        raise DetectionError(f"field scan failed: {exc}") from exc
    elements = [ElementSnapshot.model_validate(item) for item in raw or []]
    fields = build_fields(elements)
    logger.info("Detected %d form fields on %s", len(fields), page.url)
    return fields
