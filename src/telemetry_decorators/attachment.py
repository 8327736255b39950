"""
Decorator attachment conventions.

Instrumentation decorators accept three argument shapes and route all of them
to the same wrapping core:

- ``decorator(target)``: plain decoration of a function, ``property``,
  ``staticmethod`` or ``classmethod``
- ``decorator(value, AttachmentContext(kind, name))``: context-object
  convention for methods, getters, setters, fields and accessors
- ``decorator(owner, member_name, descriptor)``: descriptor convention, which
  returns a replacement descriptor (see ``instrument_member``)

Example:
    class Repository:
        @traced()
        def load(self, key): ...

    # instrument a class you do not own
    instrument_member(ThirdPartyClient, "send", traced(start_mode="create_child"))
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from telemetry_decorators.exceptions import AttachmentError


class AttachmentKind(str, Enum):
    METHOD = "method"
    GETTER = "getter"
    SETTER = "setter"
    FIELD = "field"
    ACCESSOR = "accessor"


@dataclass(frozen=True)
class AttachmentContext:
    """Describes the class member a decorator is applied to."""

    kind: AttachmentKind | str
    name: Optional[str] = None


@dataclass(frozen=True)
class AccessorInit:
    """Result of attaching to an accessor: ``init`` transforms the initial value."""

    init: Callable[[Any], Any]


class Attachable(ABC):
    """Base class for decorators that accept every attachment convention."""

    @abstractmethod
    def wrap(
        self,
        original: Callable,
        member_name: Optional[str] = None,
        module: Optional[str] = None,
        bound: Optional[bool] = None,
    ) -> Callable:
        """Return the instrumented version of ``original``."""

    def __call__(self, *args: Any) -> Any:
        if len(args) == 1:
            return self._attach_direct(args[0])
        if len(args) == 2 and isinstance(args[1], AttachmentContext):
            return self._attach_with_context(args[0], args[1])
        if len(args) == 3 and isinstance(args[1], str):
            return self._attach_to_member(args[0], args[1], args[2])
        raise AttachmentError(f"{type(self).__name__} cannot be applied to arguments {args!r}")

    def _attach_direct(self, target: Any, member_name: Optional[str] = None, module: Optional[str] = None) -> Any:
        if isinstance(target, property):
            name = member_name or getattr(target.fget, "__name__", None)
            return property(
                self.wrap(target.fget, name, module, bound=True) if target.fget else None,
                self.wrap(target.fset, name, module, bound=True) if target.fset else None,
                self.wrap(target.fdel, name, module, bound=True) if target.fdel else None,
                target.__doc__,
            )
        if isinstance(target, staticmethod):
            return staticmethod(self.wrap(target.__func__, member_name, module, bound=False))
        if isinstance(target, classmethod):
            return classmethod(self.wrap(target.__func__, member_name, module, bound=True))
        if callable(target):
            return self.wrap(target, member_name, module)
        raise AttachmentError(f"{type(self).__name__} cannot instrument {target!r}")

    def _attach_with_context(self, value: Any, context: AttachmentContext) -> Any:
        try:
            kind = AttachmentKind(context.kind)
        except ValueError:
            return value

        if kind in (AttachmentKind.METHOD, AttachmentKind.GETTER, AttachmentKind.SETTER):
            if isinstance(value, (staticmethod, classmethod, property)):
                return self._attach_direct(value, context.name)
            return self.wrap(value, context.name, bound=True)

        def init(initial: Any) -> Any:
            if callable(initial):
                return self.wrap(initial, context.name, bound=False)
            return initial

        if kind == AttachmentKind.FIELD:
            return init
        return AccessorInit(init=init)

    def _attach_to_member(self, owner: Any, member_name: str, descriptor: Any) -> Any:
        module = owner.__name__ if isinstance(owner, type) else type(owner).__name__
        if isinstance(descriptor, property):
            if descriptor.fget is not None:
                return descriptor.getter(self.wrap(descriptor.fget, member_name, module, bound=True))
            if descriptor.fset is not None:
                return descriptor.setter(self.wrap(descriptor.fset, member_name, module, bound=True))
            return descriptor
        if isinstance(descriptor, (staticmethod, classmethod)):
            return self._attach_direct(descriptor, member_name, module)
        if callable(descriptor):
            return self.wrap(descriptor, member_name, module, bound=True)
        raise AttachmentError(f"{owner!r}.{member_name} is not a callable or property descriptor")


def instrument_member(owner: type, member_name: str, decorator: Attachable) -> Any:
    """Replace ``owner.member_name`` with its instrumented descriptor.

    Args:
        owner: Class holding the member
        member_name: Attribute name on ``owner`` (looked up through the MRO)
        decorator: Any instrumentation decorator

    Returns:
        The installed descriptor
    """
    descriptor = inspect.getattr_static(owner, member_name)
    replaced = decorator(owner, member_name, descriptor)
    setattr(owner, member_name, replaced)
    return replaced
