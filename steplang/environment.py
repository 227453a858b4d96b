"""
Steplang Environment
====================
Chained lexical scopes. Each Environment maps names to values, remembers
which of its names are constants, and links to the enclosing scope.

Function scopes are parented at the closure's defining environment, so a
closure and every call it spawns share the same captured scope.
"""
from .objects import Object
from .steps import EnvironmentSnapshot, VariableSnapshot


# Bindings with this prefix are internal (e.g. `__class__`) and never shown
HIDDEN_PREFIX = "__"


class Environment:
    """A single scope in the environment chain."""

    def __init__(self, outer: "Environment | None" = None, is_block_scope: bool = False):
        self.store: dict[str, Object] = {}
        self.constants: set[str] = set()
        self.outer = outer
        self.is_block_scope = is_block_scope

    def get(self, name: str) -> Object | None:
        """Resolve `name` through the chain; None when unbound."""
        scope = self.find_scope(name)
        return scope.store[name] if scope is not None else None

    def find_scope(self, name: str) -> "Environment | None":
        """The innermost environment that binds `name`."""
        scope = self
        while scope is not None:
            if name in scope.store:
                return scope
            scope = scope.outer
        return None

    def contains_locally(self, name: str) -> bool:
        return name in self.store

    def is_constant(self, name: str) -> bool:
        scope = self.find_scope(name)
        return scope is not None and name in scope.constants

    def define(self, name: str, value: Object) -> Object:
        self.store[name] = value
        return value

    def define_constant(self, name: str, value: Object) -> Object:
        self.store[name] = value
        self.constants.add(name)
        return value

    def assign(self, name: str, value: Object) -> bool:
        """Rebind `name` where it is defined; False when it is unbound."""
        scope = self.find_scope(name)
        if scope is None:
            return False
        scope.store[name] = value
        return True

    def new_block_scope(self) -> "Environment":
        return Environment(outer=self, is_block_scope=True)

    def new_function_scope(self) -> "Environment":
        return Environment(outer=self)

    def snapshot(self) -> EnvironmentSnapshot:
        """Visible bindings of this scope and every enclosing one."""
        variables = [
            VariableSnapshot(
                name=name,
                value=value.inspect(),
                type=value.type.value,
                is_constant=name in self.constants,
            )
            for name, value in self.store.items()
            if not name.startswith(HIDDEN_PREFIX)
        ]
        parent = self.outer.snapshot() if self.outer is not None else None
        return EnvironmentSnapshot(
            variables=variables, parent=parent, is_block_scope=self.is_block_scope,
        )

    def __repr__(self) -> str:
        kind = "block" if self.is_block_scope else "scope"
        return f"<Environment {kind} {sorted(self.store)}>"
