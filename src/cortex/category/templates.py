"""Category layouts seeded into a freshly initialized store.

A template maps a top-level slug to its description and optional nested
``subcategories`` of the same shape.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

CategoryTemplate = dict[str, dict[str, Any]]

GLOBAL_STORE_CATEGORIES: CategoryTemplate = {
    "admin": {
        "description": "Meta category for managing the memory store",
    },
    "human": {
        "description": (
            "Meta category for human-related information, such as user profiles, "
            "preferences, and communication style."
        ),
        "subcategories": {
            "profile": {
                "description": "User profiles, including names, roles, and contact information.",
            },
            "preferences": {
                "description": "User preferences for communication style, content format, and interaction frequency.",
            },
        },
    },
    "agents": {
        "description": "Information for AI agents, including their capabilities, personality, and interaction logs.",
        "subcategories": {
            "persona": {
                "description": "Agent personas, detailing their characteristics, expertise, and communication style.",
            },
        },
    },
}

PROJECT_STORE_CATEGORIES: CategoryTemplate = {
    "admin": {
        "description": "Meta category for managing the memory store",
    },
    "tasks": {
        "description": "Use for project management, task tracking, and to-do lists.",
    },
    "standup": {
        "description": "Daily standup notes, blockers, and progress updates.",
    },
    "decisions": {
        "description": "Key project decisions, rationale, and alternatives considered.",
    },
    "standards": {
        "description": "Standard operating procedures, guidelines, and best practices.",
        "subcategories": {
            "coding": {
                "description": (
                    "Coding standards, style guides, and code review checklists. "
                    "Subcategories may include specific language standards."
                ),
            },
        },
    },
}

TEMPLATES: dict[str, CategoryTemplate] = {
    "global": GLOBAL_STORE_CATEGORIES,
    "project": PROJECT_STORE_CATEGORIES,
}


def walk_template(template: CategoryTemplate, parent: str = "") -> Iterator[tuple[str, str | None]]:
    """Yield ``(path, description)`` pairs, each parent before its children."""
    for slug, spec in template.items():
        path = f"{parent}/{slug}" if parent else slug
        yield path, spec.get("description")
        yield from walk_template(spec.get("subcategories") or {}, path)
