"""Shared registry of component categories and relationship types.

Every consumer (CLI tables, SVG preview, external renderers) reads labels and
colors from here instead of keeping its own category -> color map.
"""

from __future__ import annotations

import re
from enum import Enum


class Category(str, Enum):
    """Kind of metadata component a node represents."""

    STANDARD_OBJECT = "StandardObject"
    CUSTOM_OBJECT = "CustomObject"
    APEX_CLASS = "ApexClass"
    APEX_TRIGGER = "ApexTrigger"
    FLOW = "Flow"
    LIGHTNING_COMPONENT = "LightningComponent"
    VISUALFORCE_PAGE = "VisualforcePage"
    OTHER = "Other"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def color(self) -> str:
        return _CATEGORY_COLORS[self]


class RelationshipType(str, Enum):
    """Kind of relationship an edge represents."""

    LOOKUP = "Lookup"
    MASTER_DETAIL = "MasterDetail"
    SELF_JOIN = "SelfJoin"
    MANY_TO_MANY = "ManyToMany"
    REFERENCE = "Reference"
    PARENT_CHILD = "ParentChild"

    @property
    def label(self) -> str:
        return _RELATIONSHIP_LABELS[self]

    @property
    def color(self) -> str:
        return _RELATIONSHIP_COLORS[self]

    @property
    def dash(self) -> str | None:
        """SVG stroke-dasharray for this relationship, None for a solid line."""
        return _RELATIONSHIP_DASH.get(self)


_CATEGORY_LABELS = {
    Category.STANDARD_OBJECT: "Standard object",
    Category.CUSTOM_OBJECT: "Custom object",
    Category.APEX_CLASS: "Apex class",
    Category.APEX_TRIGGER: "Apex trigger",
    Category.FLOW: "Flow",
    Category.LIGHTNING_COMPONENT: "Lightning component",
    Category.VISUALFORCE_PAGE: "Visualforce page",
    Category.OTHER: "Other",
}

_CATEGORY_COLORS = {
    Category.STANDARD_OBJECT: "#3b82f6",
    Category.CUSTOM_OBJECT: "#10b981",
    Category.APEX_CLASS: "#6366f1",
    Category.APEX_TRIGGER: "#f59e0b",
    Category.FLOW: "#8b5cf6",
    Category.LIGHTNING_COMPONENT: "#ef4444",
    Category.VISUALFORCE_PAGE: "#ec4899",
    Category.OTHER: "#64748b",
}

_RELATIONSHIP_LABELS = {
    RelationshipType.LOOKUP: "Lookup",
    RelationshipType.MASTER_DETAIL: "Master-detail",
    RelationshipType.SELF_JOIN: "Self join",
    RelationshipType.MANY_TO_MANY: "Many-to-many",
    RelationshipType.REFERENCE: "Reference",
    RelationshipType.PARENT_CHILD: "Parent-child",
}

_RELATIONSHIP_COLORS = {
    RelationshipType.LOOKUP: "#5a7d9a",
    RelationshipType.MASTER_DETAIL: "#ea8c55",
    RelationshipType.SELF_JOIN: "#8a49a8",
    RelationshipType.MANY_TO_MANY: "#3eb489",
    RelationshipType.REFERENCE: "#94a3b8",
    RelationshipType.PARENT_CHILD: "#475569",
}

_RELATIONSHIP_DASH = {
    RelationshipType.REFERENCE: "4,4",
}

# Spellings seen in metadata exports, keyed by their squashed form.
_CATEGORY_ALIASES: dict[str, Category] = {
    "standardobject": Category.STANDARD_OBJECT,
    "standard": Category.STANDARD_OBJECT,
    "object": Category.STANDARD_OBJECT,
    "customobject": Category.CUSTOM_OBJECT,
    "custom": Category.CUSTOM_OBJECT,
    "apexclass": Category.APEX_CLASS,
    "apex": Category.APEX_CLASS,
    "class": Category.APEX_CLASS,
    "service": Category.APEX_CLASS,
    "apextrigger": Category.APEX_TRIGGER,
    "trigger": Category.APEX_TRIGGER,
    "flow": Category.FLOW,
    "automation": Category.FLOW,
    "process": Category.FLOW,
    "processbuilder": Category.FLOW,
    "workflow": Category.FLOW,
    "lightningcomponent": Category.LIGHTNING_COMPONENT,
    "lightningwebcomponent": Category.LIGHTNING_COMPONENT,
    "lwc": Category.LIGHTNING_COMPONENT,
    "aura": Category.LIGHTNING_COMPONENT,
    "auracomponent": Category.LIGHTNING_COMPONENT,
    "component": Category.LIGHTNING_COMPONENT,
    "ui": Category.LIGHTNING_COMPONENT,
    "visualforcepage": Category.VISUALFORCE_PAGE,
    "visualforce": Category.VISUALFORCE_PAGE,
    "apexpage": Category.VISUALFORCE_PAGE,
    "page": Category.VISUALFORCE_PAGE,
    "other": Category.OTHER,
}

_RELATIONSHIP_ALIASES: dict[str, RelationshipType] = {
    "lookup": RelationshipType.LOOKUP,
    "masterdetail": RelationshipType.MASTER_DETAIL,
    "master": RelationshipType.MASTER_DETAIL,
    "selfjoin": RelationshipType.SELF_JOIN,
    "self": RelationshipType.SELF_JOIN,
    "hierarchy": RelationshipType.SELF_JOIN,
    "manytomany": RelationshipType.MANY_TO_MANY,
    "junction": RelationshipType.MANY_TO_MANY,
    "reference": RelationshipType.REFERENCE,
    "referenced": RelationshipType.REFERENCE,
    "references": RelationshipType.REFERENCE,
    "dependency": RelationshipType.REFERENCE,
    "parentchild": RelationshipType.PARENT_CHILD,
    "childrelationship": RelationshipType.PARENT_CHILD,
}

STRENGTH_VALUES = {"weak": 1.0, "medium": 2.0, "strong": 3.0}

_SQUASH = re.compile(r"[\s_\-]+")


def _squash(raw: str) -> str:
    return _SQUASH.sub("", raw.strip().lower())


def parse_category(raw: str | Category | None, name: str | None = None, *, strict: bool = False) -> Category:
    """Normalize a category spelling; unknown values become ``Other``.

    A component whose API name ends in ``__c`` defaults to ``CustomObject``
    when the category itself is missing or unknown. With ``strict=True`` an
    unrecognised spelling raises ``ValueError`` instead.
    """
    if isinstance(raw, Category):
        return raw
    if raw:
        found = _CATEGORY_ALIASES.get(_squash(str(raw)))
        if found is not None:
            return found
    if strict:
        raise ValueError(f"unknown component category: {raw!r}")
    if name and name.strip().lower().endswith("__c"):
        return Category.CUSTOM_OBJECT
    return Category.OTHER


def parse_relationship_type(raw: str | RelationshipType | None) -> RelationshipType:
    """Normalize a relationship spelling (``Master-Detail``, ``Self Join``...).

    Unknown or missing values are treated as ``Lookup``.
    """
    if isinstance(raw, RelationshipType):
        return raw
    if not raw:
        return RelationshipType.LOOKUP
    key = _squash(str(raw))
    if key in _RELATIONSHIP_ALIASES:
        return _RELATIONSHIP_ALIASES[key]
    # "Master-Detail (Account)" style labels
    if "master" in key:
        return RelationshipType.MASTER_DETAIL
    if "self" in key:
        return RelationshipType.SELF_JOIN
    if "many" in key:
        return RelationshipType.MANY_TO_MANY
    return RelationshipType.LOOKUP


def strength_value(raw: str | None) -> float | None:
    """Map a dependency strength (weak/medium/strong) to an edge value."""
    if not raw:
        return None
    return STRENGTH_VALUES.get(str(raw).strip().lower())


def truncate_label(name: str, limit: int = 20) -> str:
    """Shorten long labels so they fit inside a Sankey node."""
    if len(name) > limit:
        return name[: max(0, limit - 2)] + "..."
    return name
