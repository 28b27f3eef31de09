"""Named workflow catalog with categories and descriptive metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from agentflow.core.definition import WorkflowDefinition
from agentflow.core.graph import DependencyGraph


@dataclass
class CatalogEntry:
    definition: WorkflowDefinition
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    description: str = ""

    def metadata(self) -> dict:
        d = self.definition
        return {
            "name": d.name,
            "version": d.version,
            "description": self.description or d.description,
            "categories": list(self.categories),
            "tags": list(self.tags),
            "steps": len(d.steps),
            "agents": sorted({s.agent for s in d.steps}),
        }


class WorkflowCatalog:
    """Definitions are validated when registered, so lookups never return a broken graph."""

    def __init__(self):
        self._entries: dict[str, CatalogEntry] = {}

    def register(
        self,
        definition: WorkflowDefinition,
        *,
        name: str | None = None,
        categories: list[str] | None = None,
        tags: list[str] | None = None,
        description: str = "",
    ) -> CatalogEntry:
        DependencyGraph.build(definition)
        key = name or definition.name
        entry = CatalogEntry(
            definition=definition,
            categories=list(categories or []),
            tags=list(tags or []),
            description=description,
        )
        self._entries[key] = entry
        return entry

    def register_file(self, path: Union[str, Path], **kwargs) -> CatalogEntry:
        return self.register(WorkflowDefinition.from_file(path), **kwargs)

    def get(self, name: str) -> WorkflowDefinition:
        if name not in self._entries:
            available = ", ".join(sorted(self._entries)) or "none"
            raise KeyError(f"Workflow '{name}' not found. Available workflows: {available}")
        return self._entries[name].definition

    def has(self, name: str) -> bool:
        return name in self._entries

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def names(self) -> list[str]:
        return list(self._entries)

    def categories(self) -> list[str]:
        seen: list[str] = []
        for entry in self._entries.values():
            for cat in entry.categories:
                if cat not in seen:
                    seen.append(cat)
        return seen

    def by_category(self, category: str) -> list[WorkflowDefinition]:
        return [e.definition for e in self._entries.values() if category in e.categories]

    def by_tag(self, tag: str) -> list[WorkflowDefinition]:
        return [e.definition for e in self._entries.values() if tag in e.tags]

    def metadata(self, name: str) -> dict:
        self.get(name)
        return self._entries[name].metadata()
