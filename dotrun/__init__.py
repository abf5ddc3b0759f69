"""dotrun — execute workflows described as DOT graphs.

States are graph nodes, signals are edge labels, and each state is bound at
runtime to an action through a pattern.  Public surface::

    from dotrun import DotRunner

    runner = DotRunner(edge_statements, {"Say {message}": say})
    context = await runner.run()
"""
from dotrun.config import ConfigError, RunnerConfig, load_config
from dotrun.edge_selector import TransitionSelector
from dotrun.exceptions import (
    ActionPatternError,
    AmbiguousTransitionError,
    EngineError,
    LoopDetectedError,
    MalformedGraphError,
    RerunNotAllowedError,
    TransitionError,
    UnresolvedTransitionError,
)
from dotrun.graph import (
    Edge,
    EdgeStatement,
    Graph,
    Topology,
    normalize_statements,
    resolve_topology,
)
from dotrun.logging_setup import setup_logging
from dotrun.matcher import ActionBinding, ActionMatch, ActionMatcher, compile_pattern
from dotrun.runner import Cursor, DotRunner, RunStatus

__all__ = [
    # Graph model
    "Edge",
    "EdgeStatement",
    "Graph",
    "Topology",
    "normalize_statements",
    "resolve_topology",
    # Matching
    "ActionBinding",
    "ActionMatch",
    "ActionMatcher",
    "compile_pattern",
    # Transitions
    "TransitionSelector",
    # Exceptions
    "EngineError",
    "MalformedGraphError",
    "ActionPatternError",
    "TransitionError",
    "UnresolvedTransitionError",
    "AmbiguousTransitionError",
    "LoopDetectedError",
    "RerunNotAllowedError",
    "ConfigError",
    # Config
    "RunnerConfig",
    "load_config",
    # Logging
    "setup_logging",
    # Runner
    "Cursor",
    "DotRunner",
    "RunStatus",
]

__version__ = "0.1.0"
