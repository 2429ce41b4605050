from __future__ import annotations

from .models import ElementSnapshot


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def synthesize_selector(element: ElementSnapshot) -> str:
    """Build a CSS selector for a scanned element.

    Priority: id attribute, name attribute, every class, then the element's
    1-based position among same-tag siblings. An element without a parent gets
    the bare tag. Uniqueness on the page is not checked.
    """
    tag = element.tag.lower()
    if element.id:
        return f"{tag}[id={_quote(element.id)}]"
    if element.name:
        return f"{tag}[name={_quote(element.name)}]"
    classes = [cls.strip() for cls in element.classes if cls.strip()]
    if classes:
        return ".".join([tag, *classes])
    if element.has_parent:
        return f"{tag}:nth-child({element.same_tag_index})"
    return tag
