"""
Steplang Runtime Configuration
==============================
Limits shared by both evaluators. Values come from the dataclass defaults,
from `STEPLANG_*` environment variables via `from_env()`, and finally from
CLI flags, in increasing order of priority.
"""
import os
from dataclasses import dataclass, replace

from .callstack import DEFAULT_MAX_DEPTH


ENV_PREFIX = "STEPLANG_"


@dataclass(frozen=True)
class RuntimeConfig:
    """Evaluation limits.

    Only populate what you need to override; the defaults are safe for
    interactive use.
    """

    max_call_depth: int = DEFAULT_MAX_DEPTH   # CallStack ceiling
    max_loop_iterations: int = 100_000        # Per loop statement execution
    max_steps: int = 200_000                  # Stepwise history cap
    echo_output: bool = True                  # run.py prints program output

    @classmethod
    def from_env(cls, environ=None) -> "RuntimeConfig":
        """Build a config from STEPLANG_MAX_* variables, ignoring unset ones."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in ("max_call_depth", "max_loop_iterations", "max_steps"):
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                value = int(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from None
            if value < 1:
                raise ValueError(f"{ENV_PREFIX}{name.upper()} must be positive, got {value}")
            overrides[name] = value
        return cls(**overrides)

    def with_overrides(self, **overrides) -> "RuntimeConfig":
        """Copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
