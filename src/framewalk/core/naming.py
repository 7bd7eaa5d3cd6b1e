"""Role and name derivation shared by the in-page and layout collectors.

Collectors gather raw attributes; the rules that turn them into a role and a
label live here so every tier names elements the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .model import DEFAULT_NAME_MAX_LENGTH, UNNAMED, clean_name

_INPUT_ROLES = {
    "submit": "button",
    "button": "button",
    "reset": "button",
    "image": "button",
    "checkbox": "checkbox",
    "radio": "radio",
    "search": "searchbox",
    "number": "spinbutton",
    "range": "slider",
}

_TAG_ROLES = {
    "button": "button",
    "a": "link",
    "select": "combobox",
    "textarea": "textbox",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
}

_VALUE_NAMED_INPUTS = {"submit", "reset", "button"}
_FORM_FIELDS = {"input", "textarea"}


@dataclass(frozen=True)
class RawElement:
    """Attributes of one element as seen by a collector."""

    tag: str
    type: str = ""
    role: str = ""
    aria_label: str = ""
    title: str = ""
    placeholder: str = ""
    value: str = ""
    text: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawElement:
        def s(key: str) -> str:
            val = data.get(key)
            return str(val) if val is not None else ""

        return cls(
            tag=s("tag").lower(),
            type=s("type").lower(),
            role=s("role"),
            aria_label=s("ariaLabel"),
            title=s("title"),
            placeholder=s("placeholder"),
            value=s("value"),
            text=s("text"),
        )


def derive_role(raw: RawElement) -> str:
    """Explicit role attribute first, then the tag's default role."""
    explicit = raw.role.strip().split()
    if explicit:
        return explicit[0].lower()
    if raw.tag == "input":
        return _INPUT_ROLES.get(raw.type or "text", "textbox")
    return _TAG_ROLES.get(raw.tag, "generic")


def derive_name(
    raw: RawElement,
    max_length: int | None = DEFAULT_NAME_MAX_LENGTH,
    fallback: str = UNNAMED,
) -> str:
    """aria-label > title > placeholder > value > text > ``fallback``."""
    candidates = [raw.aria_label, raw.title]
    if raw.tag in _FORM_FIELDS:
        candidates.append(raw.placeholder)
    if raw.tag == "input" and raw.type in _VALUE_NAMED_INPUTS:
        candidates.append(raw.value)
    candidates.append(raw.text)
    for candidate in candidates:
        name = clean_name(candidate, max_length)
        if name != UNNAMED:
            return name
    return clean_name(fallback, max_length)


def name_was_truncated(raw: RawElement, max_length: int = DEFAULT_NAME_MAX_LENGTH) -> bool:
    return derive_name(raw, max_length) != derive_name(raw, max_length=None)
