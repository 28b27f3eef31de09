"""Dependency graph construction and validation."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from agentflow.core.condition import referenced_keys
from agentflow.core.definition import WorkflowDefinition
from agentflow.core.errors import DefinitionError, EvaluationError
from agentflow.core.step import StepDefinition


@dataclass(frozen=True)
class DependencyGraph:
    """
    DAG keyed by step id.

    ``dependencies[s]`` are the steps ``s`` waits for, ``dependents[s]`` the
    steps waiting for ``s``. ``producers`` maps every declared output key to
    the step that writes it.
    """

    order: tuple[str, ...]  # declaration order
    dependencies: dict[str, frozenset[str]] = field(default_factory=dict)
    dependents: dict[str, frozenset[str]] = field(default_factory=dict)
    producers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, definition: WorkflowDefinition) -> "DependencyGraph":
        """Validate ``definition`` and return its graph. Pure; raises DefinitionError."""
        ids = definition.step_ids
        known = set(ids)

        dependencies: dict[str, set[str]] = {sid: set() for sid in ids}
        dependents: dict[str, set[str]] = {sid: set() for sid in ids}
        for step in definition.steps:
            for dep in sorted(step.depends_on):
                if dep not in known:
                    raise DefinitionError(
                        f"Step '{step.id}' depends on unknown step '{dep}'", step_id=step.id
                    )
                dependencies[step.id].add(dep)
                dependents[dep].add(step.id)

        producers: dict[str, str] = {}
        for step in definition.steps:
            for key in step.outputs:
                if key in producers:
                    raise DefinitionError(
                        f"Output '{key}' of step '{step.id}' is already written by "
                        f"step '{producers[key]}'",
                        step_id=step.id,
                    )
                producers[key] = step.id

        graph = cls(
            order=tuple(ids),
            dependencies={k: frozenset(v) for k, v in dependencies.items()},
            dependents={k: frozenset(v) for k, v in dependents.items()},
            producers=producers,
        )

        topo = graph._kahn()
        if len(topo) < len(ids):
            stuck = [sid for sid in ids if sid not in set(topo)]
            cycle = graph._find_cycle(stuck)
            raise DefinitionError(
                f"Dependency cycle detected: {' -> '.join(cycle)}", step_id=cycle[0]
            )

        # A step may only read another step's output if that step is upstream of it
        for step in definition.steps:
            upstream = graph.ancestors(step.id)
            for key, origin in _read_keys(step):
                producer = producers.get(key)
                if producer is not None and producer not in upstream:
                    raise DefinitionError(
                        f"Step '{step.id}' {origin} '{key}' produced by step '{producer}' "
                        f"but does not depend on it",
                        step_id=step.id,
                    )

        return graph

    def _kahn(self) -> list[str]:
        in_degree = {sid: len(self.dependencies[sid]) for sid in self.order}
        queue = deque(sid for sid in self.order if in_degree[sid] == 0)
        result: list[str] = []
        while queue:
            sid = queue.popleft()
            result.append(sid)
            for child in sorted(self.dependents[sid], key=self.order.index):
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)
        return result

    def _find_cycle(self, candidates: list[str]) -> list[str]:
        """Return one cycle among ``candidates`` as a closed path (first == last)."""
        pending = set(candidates)
        path: list[str] = []
        on_path: dict[str, int] = {}
        node = candidates[0]
        # every stuck node keeps at least one stuck dependency
        while node not in on_path:
            on_path[node] = len(path)
            path.append(node)
            node = min(
                (d for d in self.dependencies[node] if d in pending),
                key=self.order.index,
            )
        return path[on_path[node]:] + [node]

    def topological_order(self) -> list[str]:
        return self._kahn()

    def ancestors(self, step_id: str) -> set[str]:
        seen: set[str] = set()
        stack = list(self.dependencies[step_id])
        while stack:
            sid = stack.pop()
            if sid not in seen:
                seen.add(sid)
                stack.extend(self.dependencies[sid])
        return seen

    def waves(self) -> list[list[str]]:
        """Static readiness levels: the waves a fully successful run dispatches."""
        level: dict[str, int] = {}
        for sid in self._kahn():
            deps = self.dependencies[sid]
            level[sid] = 1 + max((level[d] for d in deps), default=-1)
        waves: list[list[str]] = [[] for _ in range(max(level.values(), default=-1) + 1)]
        for sid in self.order:
            waves[level[sid]].append(sid)
        return waves

    def roots(self) -> list[str]:
        return [sid for sid in self.order if not self.dependencies[sid]]


def _read_keys(step: StepDefinition) -> list[tuple[str, str]]:
    """Data-bag keys a step consumes, through its inputs or its condition."""
    keys = [(ref.key, "reads") for ref in step.inputs]
    if step.condition:
        try:
            referenced = referenced_keys(step.condition)
        except EvaluationError:
            # bad syntax fails the step when it runs
            referenced = set()
        keys.extend((key, "tests") for key in sorted(referenced))
    return keys
