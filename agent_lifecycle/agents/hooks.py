"""
Agent Lifecycle Hooks

Collaborators subscribe handlers to lifecycle events (start, complete,
error, cancel). Handlers for one event run strictly in registration
order, each awaited before the next starts; a failing handler is
recorded in the results and never stops the rest.
"""

import inspect
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, Any, Callable, Tuple, Union

from ..telemetry import LifecycleSpan

logger = logging.getLogger("agent_lifecycle.agents.hooks")


class HookType(str, Enum):
    """Lifecycle events a handler can subscribe to."""
    ON_START = "onStart"
    ON_COMPLETE = "onComplete"
    ON_ERROR = "onError"
    ON_CANCEL = "onCancel"


HOOK_TYPES = [t.value for t in HookType]


class InvalidHookType(ValueError):
    """Raised when registering a handler for an unknown event."""

    def __init__(self, hook_type: Any):
        self.hook_type = hook_type
        super().__init__(
            f"Invalid hook type: {hook_type!r}. Valid types: {', '.join(HOOK_TYPES)}"
        )


@dataclass
class HookHandle:
    """Token returned by `register_hook`; removes exactly one handler."""
    hook_type: HookType
    handler: Callable
    token: int
    _hooks: "AgentHooks" = field(repr=False, compare=False)

    def unregister(self) -> bool:
        return self._hooks.unregister(self)


@dataclass
class HookResult:
    """Outcome of one handler invocation."""
    handler: Callable
    ok: bool
    value: Any = None
    error: Optional[str] = None
    exception: Optional[BaseException] = field(default=None, repr=False)

    @classmethod
    def success(cls, handler: Callable, value: Any) -> "HookResult":
        return cls(handler=handler, ok=True, value=value)

    @classmethod
    def failure(cls, handler: Callable, exc: BaseException) -> "HookResult":
        return cls(handler=handler, ok=False, error=str(exc) or type(exc).__name__, exception=exc)


def parse_hook_type(hook_type: Union[HookType, str]) -> HookType:
    if isinstance(hook_type, HookType):
        return hook_type
    try:
        return HookType(hook_type)
    except ValueError:
        raise InvalidHookType(hook_type) from None


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class AgentHooks:
    """
    Hook dispatcher.

    Usage:
        hooks = AgentHooks()
        handle = hooks.register_hook("onCancel", notify)
        results = await hooks.trigger_hook("onCancel", {"agent": record})
        handle.unregister()
    """

    def __init__(self):
        self._handlers: Dict[HookType, List[Tuple[int, Callable]]] = {t: [] for t in HookType}
        self._tokens = itertools.count(1)

    def register_hook(self, hook_type: Union[HookType, str], handler: Callable) -> HookHandle:
        """Append a handler; the returned handle removes it again."""
        hook_type = parse_hook_type(hook_type)
        if not callable(handler):
            raise TypeError(f"Hook handler must be callable, got {type(handler).__name__}")

        token = next(self._tokens)
        self._handlers[hook_type].append((token, handler))
        logger.debug(f"Registered {hook_type.value} handler {_handler_name(handler)} (#{token})")
        return HookHandle(hook_type=hook_type, handler=handler, token=token, _hooks=self)

    def unregister(self, handle: HookHandle) -> bool:
        """Remove the handler behind `handle`. False if already removed."""
        entries = self._handlers[handle.hook_type]
        for i, (token, _) in enumerate(entries):
            if token == handle.token:
                del entries[i]
                return True
        return False

    async def trigger_hook(
        self,
        hook_type: Union[HookType, str],
        context: Any = None,
    ) -> List[HookResult]:
        """
        Invoke every handler for `hook_type` in registration order.

        Coroutine handlers are awaited before the next handler starts, so
        each handler sees the effects of the ones before it. Exceptions are
        captured as failed results; nothing is raised to the caller.
        """
        try:
            hook_type = parse_hook_type(hook_type)
        except InvalidHookType as e:
            logger.warning(f"Ignoring trigger for unknown hook: {e}")
            return []

        entries = list(self._handlers[hook_type])
        results: List[HookResult] = []

        with LifecycleSpan.hook_dispatch(hook_type.value, len(entries)) as span:
            for token, handler in entries:
                try:
                    value = handler(context)
                    if inspect.isawaitable(value):
                        value = await value
                    results.append(HookResult.success(handler, value))
                except Exception as e:
                    logger.warning(
                        f"{hook_type.value} handler {_handler_name(handler)} (#{token}) failed: {e}"
                    )
                    results.append(HookResult.failure(handler, e))

            span.set_attribute("hook.failures", sum(1 for r in results if not r.ok))

        return results

    def get_handlers(self, hook_type: Union[HookType, str]) -> List[Callable]:
        """Registered handlers for a type, in order."""
        return [handler for _, handler in self._handlers[parse_hook_type(hook_type)]]

    def clear_hooks(self, hook_type: Optional[Union[HookType, str]] = None):
        """Clear one type's handlers, or every type when omitted."""
        if hook_type is None:
            for entries in self._handlers.values():
                entries.clear()
        else:
            self._handlers[parse_hook_type(hook_type)].clear()
