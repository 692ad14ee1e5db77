"""
The binding environment a Program is executed against.
"""

from typing import Any, Callable, Dict, Optional

from bel.bel_errors import ContextError, ExecutionError
from bel.bel_functions import NativeFunction, Overloads
from bel.bel_lexer import KEYWORDS, RESERVED, is_identifier
from bel.bel_stdlib import register_stdlib
from bel.bel_values import Value, to_value


def _check_name(name: str):
    if not isinstance(name, str) or not is_identifier(name):
        raise ContextError(str(name), "not a valid identifier")
    if name in RESERVED or name in KEYWORDS or name == "in":
        raise ContextError(name, "reserved word")


class Context:
    """Variables and functions visible to an expression.

    Contexts form a chain: a child created with `new_child()` sees every
    binding of its parents, and its own bindings shadow theirs. Lookups walk
    from the child towards the root.

    `Context()` starts empty; `Context.default()` comes with the standard
    library functions registered.
    """

    def __init__(self, parent: Optional["Context"] = None):
        self.parent = parent
        self.variables: Dict[str, Value] = {}
        self.functions: Dict[str, Overloads] = {}

    @classmethod
    def default(cls) -> "Context":
        context = cls()
        register_stdlib(context)
        return context

    @classmethod
    def empty(cls) -> "Context":
        return cls()

    def new_child(self) -> "Context":
        return type(self)(parent=self)

    # -- registration ---------------------------------------------------

    def add_variable(self, name: str, value: Any):
        """Binds `name` in this scope; duplicates within one scope are rejected."""
        _check_name(name)
        if name in self.variables:
            raise ContextError(name, "already defined in this scope")
        try:
            self.variables[name] = to_value(value)
        except ExecutionError as e:
            raise ContextError(name, str(e)) from e

    def add_function(self, name: str, fn: Callable):
        """Registers `fn` under `name`, appending to any existing overloads."""
        _check_name(name)
        native = fn if isinstance(fn, NativeFunction) else NativeFunction(fn, name)
        if name not in self.functions:
            self.functions[name] = Overloads(name)
        self.functions[name].add(native)

    def function(self, name: Optional[str] = None):
        """Decorator form of `add_function`."""
        def decorator(fn):
            self.add_function(name or fn.__name__, fn)
            return fn
        return decorator

    # -- lookup ---------------------------------------------------------

    def find_owner(self, name: str) -> Optional["Context"]:
        """Finds the nearest context in the chain that binds variable `name`."""
        current = self
        while current is not None:
            if name in current.variables:
                return current
            current = current.parent
        return None

    def get_variable(self, name: str) -> Optional[Value]:
        owner = self.find_owner(name)
        return owner.variables[name] if owner is not None else None

    def get_overloads(self, name: str) -> Optional[Overloads]:
        current = self
        while current is not None:
            if name in current.functions:
                return current.functions[name]
            current = current.parent
        return None

    def has_function(self, name: str) -> bool:
        return self.get_overloads(name) is not None

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def __repr__(self):
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return f"<Context vars={sorted(self.variables)} functions={sorted(self.functions)} depth={depth}>"
