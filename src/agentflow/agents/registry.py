"""Agent registry mapping capability names to callables."""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Union

_log = logging.getLogger(__name__)

AgentCallable = Callable[[str, dict], Union[Any, Awaitable[Any]]]


class Agent:
    """
    An opaque capability invoked as ``execute(action, inputs)``.

    The handler may be a plain function, a coroutine function, or a
    non-callable object exposing an ``execute`` method of either kind.
    Sync handlers run in a worker thread so they never block the event loop.
    """

    def __init__(self, name: str, handler: Any, description: str = ""):
        self.name = name
        self.description = description
        self.handler = handler
        target = handler if callable(handler) else getattr(handler, "execute", None)
        if not callable(target):
            raise TypeError(f"Agent '{name}' handler is not callable: {handler!r}")
        self._target = target

    @property
    def is_async(self) -> bool:
        fn = self._target
        return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
            getattr(fn, "__call__", None)
        )

    async def execute(self, action: str, inputs: dict) -> Any:
        if self.is_async:
            return await self._target(action, inputs)
        result = await asyncio.to_thread(self._target, action, inputs)
        if inspect.isawaitable(result):
            return await result
        return result

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r})"


class AgentRegistry:
    """Read-only during a run; safe to share across runs."""

    def __init__(self, agents: Mapping[str, Any] | None = None):
        self._agents: dict[str, Agent] = {}
        for name, handler in (agents or {}).items():
            self.register(name, handler)

    def register(self, name: str, handler: Any, description: str = "") -> Agent:
        agent = handler if isinstance(handler, Agent) else Agent(name, handler, description)
        if name in self._agents:
            _log.debug("Agent '%s' re-registered", name)
        self._agents[name] = agent
        return agent

    def agent(self, name: str | None = None, description: str = ""):
        """
        Decorator registering a function as an agent.

        Usage::

            registry = AgentRegistry()

            @registry.agent("math")
            async def math_agent(action: str, inputs: dict) -> dict:
                ...
        """

        def decorator(func: Callable) -> Callable:
            agent_name = name or func.__name__
            self.register(agent_name, func, description or (func.__doc__ or "").strip())
            return func

        return decorator

    def unregister(self, name: str):
        self._agents.pop(name, None)

    def get(self, name: str) -> Agent | None:
        return self._agents.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def names(self) -> list[str]:
        return sorted(self._agents)

    @classmethod
    def coerce(cls, agents: Union["AgentRegistry", Mapping[str, Any], None]) -> "AgentRegistry":
        if isinstance(agents, AgentRegistry):
            return agents
        return cls(agents or {})


def load_agents(spec: str) -> AgentRegistry:
    """
    Import an agent registry from ``"package.module:attribute"``.

    The attribute may be an AgentRegistry, a name → callable mapping, or a
    zero-argument factory returning either.
    """
    module_path, sep, attr = spec.partition(":")
    if not sep or not module_path or not attr:
        raise ValueError(f"Agent spec must look like 'module.path:attribute', got '{spec}'")

    module = importlib.import_module(module_path)
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module '{module_path}' has no attribute '{attr}'") from None

    if callable(target) and not isinstance(target, (AgentRegistry, Mapping)):
        target = target()
    if not isinstance(target, (AgentRegistry, Mapping)):
        raise ValueError(
            f"'{spec}' must resolve to an AgentRegistry or a mapping, got {type(target).__name__}"
        )
    return AgentRegistry.coerce(target)


_global_registry = AgentRegistry()


def get_registry() -> AgentRegistry:
    return _global_registry
