"""ActionMatcher — binds state names to action callables through patterns.

A pattern is a literal state name that may contain ``{name}`` placeholders::

    "Say {message}"  matches "Say Hello" with params {"message": "Hello"}

Patterns are compiled once, at construction, into anchored regular
expressions.  Bindings are tried in the mapping's declaration order and the
first one that matches wins.  Matching is pure.

Action calling convention:
    Every action is offered ``(params, context)``: the placeholder values and
    the run's shared context dict.  An action that declares fewer positional
    parameters receives only as many as it accepts, params first, so
    ``lambda: ...``, ``lambda params: ...`` and
    ``async def act(params, context): ...`` are all valid actions.
"""
from __future__ import annotations

import inspect
import re
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from dotrun.exceptions import ActionPatternError

Action = Callable[..., Any]

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile *pattern* into a full-match regular expression.

    Literal segments are escaped; each ``{name}`` placeholder becomes a named
    group.  Braces that do not enclose a valid identifier stay literal.

    Raises:
        ActionPatternError: If a placeholder name is used twice.
    """
    parts: list[str] = []
    seen: set[str] = set()
    pos = 0
    for m in _PLACEHOLDER.finditer(pattern):
        name = m.group(1)
        if name in seen:
            raise ActionPatternError(pattern, f"placeholder '{name}' appears more than once")
        seen.add(name)
        parts.append(re.escape(pattern[pos:m.start()]))
        parts.append(f"(?P<{name}>.*)")
        pos = m.end()
    parts.append(re.escape(pattern[pos:]))
    return re.compile("".join(parts))


def _positional_capacity(action: Action) -> int:
    """How many of ``(params, context)`` *action* can receive positionally."""
    try:
        sig = inspect.signature(action)
    except (TypeError, ValueError):
        return 2
    count = 0
    for param in sig.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return 2
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
    return min(count, 2)


@dataclass(frozen=True)
class ActionBinding:
    """A compiled pattern paired with the callable it selects."""

    pattern: str
    regex: re.Pattern[str]
    action: Action
    arity: int = 2

    @classmethod
    def compile(cls, pattern: str, action: Action) -> ActionBinding:
        if not callable(action):
            raise ActionPatternError(pattern, f"action must be callable, got {type(action).__name__}")
        return cls(
            pattern=pattern,
            regex=compile_pattern(pattern),
            action=action,
            arity=_positional_capacity(action),
        )

    def match(self, state: str) -> dict[str, str] | None:
        """Return extracted placeholder values, or ``None`` if *state* does not match."""
        m = self.regex.fullmatch(state)
        return m.groupdict() if m else None

    def invoke(self, params: dict[str, str], context: dict[str, Any]) -> Any:
        """Call the action with as many of ``(params, context)`` as it accepts."""
        return self.action(*(params, context)[: self.arity])


@dataclass(frozen=True)
class ActionMatch:
    """Result of a successful lookup: the binding and the extracted params."""

    binding: ActionBinding
    params: dict[str, str]

    @property
    def action(self) -> Action:
        return self.binding.action


class ActionMatcher:
    """Ordered collection of action bindings.

    Args:
        actions: Mapping of pattern → callable.  Iteration order is the
                 matching priority.

    Example::

        matcher = ActionMatcher({"Say {message}": say})
        found = matcher.find_action("Say Hello")
        found.params  # {"message": "Hello"}
    """

    def __init__(self, actions: Mapping[str, Action] | None = None) -> None:
        self._bindings: tuple[ActionBinding, ...] = tuple(
            ActionBinding.compile(pattern, action)
            for pattern, action in (actions or {}).items()
        )

    def find_action(self, state: str) -> ActionMatch | None:
        """Return the first binding whose pattern fully matches *state*."""
        for binding in self._bindings:
            params = binding.match(state)
            if params is not None:
                return ActionMatch(binding=binding, params=params)
        return None

    def patterns(self) -> list[str]:
        """Return all patterns in matching order."""
        return [b.pattern for b in self._bindings]

    def __len__(self) -> int:
        return len(self._bindings)
