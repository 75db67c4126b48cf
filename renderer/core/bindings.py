"""Binding resolution: field lookups, placeholder substitution, transforms.

Nothing in here raises for missing data; an unresolvable reference is "".
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from .models import BindingConfig, BindingEntry, DataContext, TemplateBinding

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][\w]*)\.([A-Za-z_][\w.]*)\s*\}\}")


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (Mapping, list, tuple)):
        return ""
    return str(value)


def resolve(context: Optional[DataContext], source: Optional[str], field: Optional[str]) -> str:
    """Value of ``source.field`` as a string, "" when anything is missing.

    ``field`` may be a dot path; traversal stops at the first value that is
    not a mapping.
    """
    if not context or not source or not field:
        return ""
    try:
        head, *rest = field.split(".")
        value = context.lookup(source, head)
        for part in rest:
            if not isinstance(value, Mapping):
                return ""
            value = value.get(part)
        return _stringify(value)
    except Exception:  # a lookup must never break rendering
        logger.debug("Binding %s.%s failed to resolve", source, field, exc_info=True)
        return ""


def apply_transform(value: str, transform: Optional[str]) -> str:
    if not value or not transform:
        return value
    if transform == "uppercase":
        return value.upper()
    if transform == "lowercase":
        return value.lower()
    if transform == "capitalize":
        return re.sub(r"\b\w", lambda m: m.group(0).upper(), value)
    return value


def resolve_entry(context: Optional[DataContext], entry: BindingEntry) -> str:
    value = resolve(context, entry.source, entry.field)
    if not value and entry.fallback:
        value = str(entry.fallback)
    return apply_transform(value, entry.transform)


def replace_placeholders(template: Optional[str], context: Optional[DataContext]) -> str:
    """Substitute every ``{{source.field}}`` token; other braces stay as written."""
    if not template:
        return ""
    return PLACEHOLDER_RE.sub(lambda m: resolve(context, m.group(1), m.group(2)), template)


def resolve_binding(binding: BindingConfig, context: Optional[DataContext]) -> str:
    if binding is None:
        return ""
    if isinstance(binding, TemplateBinding):
        return replace_placeholders(binding.template, context)
    return "\n".join(resolve_entry(context, entry) for entry in binding)


def resolve_text(binding: BindingConfig, static_text: str, context: Optional[DataContext]) -> str:
    """Final content of a text element.

    No binding means the static text; the result always gets one more
    placeholder pass so static text may embed ``{{...}}`` tokens too.
    """
    if binding is None:
        content = static_text or ""
    else:
        content = resolve_binding(binding, context)
    return replace_placeholders(content, context)
