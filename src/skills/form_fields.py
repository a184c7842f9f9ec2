"""Form field discovery inside an active DOM context (page body or open modal)."""

from __future__ import annotations

import logging

from playwright.async_api import Locator

from src.models.plan import FormField

logger = logging.getLogger(__name__)

FILLABLE_SELECTOR = (
    'input:not([type="hidden"]):not([type="submit"]):not([type="button"])'
    ':not([type="reset"]):not([type="image"]):not([type="file"]):not([type="radio"]),'
    ' textarea, select'
)

# Runs over every fillable control in the context, keeping each control's
# position so the skill can address it again with .nth(index).
_DESCRIBE_FIELDS_JS = """
(elements) => elements.map((el, index) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    const visible = rect.width > 0 && rect.height > 0
        && style.visibility !== 'hidden' && style.display !== 'none';
    let label = '';
    if (el.labels && el.labels.length > 0) {
        label = Array.from(el.labels).map(l => l.textContent || '').join(' ');
    } else if (el.closest('label')) {
        label = el.closest('label').textContent || '';
    }
    return {
        index,
        visible,
        usable: !el.disabled && !el.readOnly,
        tag: el.tagName.toLowerCase(),
        input_type: (el.getAttribute('type') || (el.tagName === 'TEXTAREA' ? 'textarea' : 'text')).toLowerCase(),
        name: el.getAttribute('name') || '',
        element_id: el.id || '',
        placeholder: el.getAttribute('placeholder') || '',
        label: label.replace(/\\s+/g, ' ').replace(/\\*/g, '').trim(),
        options: el.tagName === 'SELECT'
            ? Array.from(el.options).map(o => o.value).filter(v => v)
            : [],
    };
})
"""


def field_key(label: str, name: str, placeholder: str, element_id: str = "") -> str:
    """Semantic label for a field: its <label>, else name, else placeholder."""
    return label or name or placeholder or element_id


async def discover_fields(context: Locator) -> list[FormField]:
    """Return the visible, editable controls inside ``context`` in DOM order."""
    raw = await context.locator(FILLABLE_SELECTOR).evaluate_all(_DESCRIBE_FIELDS_JS)

    fields: list[FormField] = []
    seen: dict[str, int] = {}
    for item in raw:
        if not item.get("visible") or not item.get("usable"):
            continue
        key = field_key(item["label"], item["name"], item["placeholder"], item["element_id"])
        if not key:
            logger.debug("Skipping unidentifiable %s at index %d", item["tag"], item["index"])
            continue
        seen[key] = seen.get(key, 0) + 1
        if seen[key] > 1:
            key = f"{key} ({seen[key]})"
        fields.append(FormField(
            key=key,
            tag=item["tag"],
            input_type=item["input_type"],
            name=item["name"],
            element_id=item["element_id"],
            placeholder=item["placeholder"],
            label=item["label"],
            options=item["options"],
            index=item["index"],
        ))

    logger.debug("Discovered %d fillable fields: %s", len(fields), [f.key for f in fields])
    return fields


def field_locator(context: Locator, field: FormField) -> Locator:
    """Address a discovered field by its position among the context's controls."""
    return context.locator(FILLABLE_SELECTOR).nth(field.index)
