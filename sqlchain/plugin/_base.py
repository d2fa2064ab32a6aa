"""Interceptor dispatch.

Pipeline nodes (executors and statement, parameter and result-set handlers) declare
their ``role`` and the argument types of each interceptable method in
``METHOD_SIGNATURES``. An interceptor declares the ``Signature`` values it wants; when
it plugs a node, the matching method names are resolved once and stored on a
``Plugin`` proxy. Calls to those methods go through ``Interceptor.intercept``; every
other attribute is read straight from the wrapped node.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Optional

from sqlchain.exceptions import ImproperConfigurationError
from sqlchain.utils.logging import get_logger

__all__ = (
    "Interceptor",
    "InterceptorChain",
    "Invocation",
    "PipelineNode",
    "Plugin",
    "Signature",
    "TargetRole",
)

logger = get_logger("plugin")


class TargetRole(str, Enum):
    """Pipeline stage an interceptor can attach to."""

    EXECUTOR = "Executor"
    STATEMENT_HANDLER = "StatementHandler"
    PARAMETER_HANDLER = "ParameterHandler"
    RESULT_SET_HANDLER = "ResultSetHandler"


@dataclass(frozen=True)
class Signature:
    """A (role, method, argument types) tuple an interceptor subscribes to."""

    role: TargetRole
    method: str
    args: "tuple[type, ...]" = ()


class PipelineNode(ABC):
    """Base for every interceptable pipeline stage.

    Attributes:
        role: Stage this node implements.
        is_decorator: True for layers that only wrap and delegate to an inner node of
            the same role (the caching executor, the routing statement handler).
        METHOD_SIGNATURES: Interceptable method name to argument types.
    """

    __slots__ = ()

    role: ClassVar[TargetRole]
    is_decorator: ClassVar[bool] = False
    METHOD_SIGNATURES: ClassVar["Mapping[str, tuple[type, ...]]"] = {}


@dataclass
class Invocation:
    """One intercepted call.

    ``proceed()`` continues the chain: the next interceptor's proxy, or the real method
    when this is the innermost interceptor. It must be called once on the normal path.
    Not calling it short-circuits the call; calling it twice runs the downstream call twice.
    """

    target: Any
    method: str
    args: "tuple[Any, ...]"
    _call: "Callable[..., Any]"

    @property
    def role(self) -> TargetRole:
        return self.target.role

    def proceed(self, *args: Any) -> Any:
        """Continue the chain, optionally with replacement arguments."""
        return self._call(*(args or self.args))


class Interceptor(ABC):
    """A cross-cutting handler wrapped around pipeline stage calls.

    Subclasses set ``signatures`` and implement ``intercept``.
    """

    signatures: ClassVar["tuple[Signature, ...]"] = ()

    @abstractmethod
    def intercept(self, invocation: Invocation) -> Any:
        """Handle an intercepted call.

        Args:
            invocation: The call, with ``proceed()`` continuing the chain.

        Returns:
            The call result (usually whatever ``proceed()`` returned).
        """
        raise NotImplementedError

    def plugin(self, target: Any) -> Any:
        """Return ``target`` wrapped in a proxy if any signature matches it."""
        return Plugin.wrap(target, self)

    def set_properties(self, properties: "Mapping[str, Any]") -> None:  # noqa: B027
        """Receive string properties at registration time."""

    @property
    def name(self) -> str:
        return type(self).__name__


class Plugin:
    """Proxy routing matched method calls of one node through one interceptor."""

    __slots__ = ("_interceptor", "_methods", "_target")

    def __init__(self, target: Any, interceptor: Interceptor, methods: "frozenset[str]") -> None:
        self._target = target
        self._interceptor = interceptor
        self._methods = methods

    @staticmethod
    def wrap(target: Any, interceptor: Interceptor) -> Any:
        """Wrap ``target`` if ``interceptor`` subscribes to any of its methods.

        A signature matches when its role equals the node's role, and the method exists in
        the node's ``METHOD_SIGNATURES`` with identical argument types. Non-matching
        signatures are ignored.

        Returns:
            A ``Plugin`` proxy, or ``target`` unchanged when nothing matches.
        """
        methods = Plugin.resolve_methods(target, interceptor.signatures)
        if not methods:
            return target
        return Plugin(target, interceptor, methods)

    @staticmethod
    def resolve_methods(target: Any, signatures: "tuple[Signature, ...]") -> "frozenset[str]":
        role: Optional[TargetRole] = getattr(target, "role", None)
        if role is None:
            return frozenset()
        declared: Mapping[str, tuple[type, ...]] = getattr(target, "METHOD_SIGNATURES", {})
        matched = set()
        for signature in signatures:
            if signature.role is not role:
                continue
            if declared.get(signature.method) == tuple(signature.args):
                matched.add(signature.method)
            else:
                logger.debug("Signature %s does not match any method of %s", signature, role.value)
        return frozenset(matched)

    @property
    def wrapped(self) -> Any:
        return self._target

    def __getattr__(self, name: str) -> Any:
        attribute = getattr(self._target, name)
        if name not in self._methods:
            return attribute
        target = self._target
        interceptor = self._interceptor

        def _intercepted(*args: Any) -> Any:
            return interceptor.intercept(Invocation(target, name, args, attribute))

        return _intercepted

    def __repr__(self) -> str:
        return f"Plugin({self._interceptor.name} -> {self._target!r})"


class InterceptorChain:
    """Ordered interceptor registry.

    ``plugin_all`` nests proxies so the first registered interceptor is outermost: its
    ``proceed()`` reaches the second, and the real method runs last.
    """

    __slots__ = ("_frozen", "_interceptors")

    def __init__(self, interceptors: "Optional[list[Interceptor]]" = None) -> None:
        self._interceptors: list[Interceptor] = list(interceptors or [])
        self._frozen = False

    def add_interceptor(self, interceptor: Interceptor) -> None:
        if self._frozen:
            msg = f"Cannot register {interceptor.name}: interceptor chain is frozen"
            raise ImproperConfigurationError(msg)
        self._interceptors.append(interceptor)
        logger.debug("Registered interceptor %s at position %d", interceptor.name, len(self._interceptors))

    def plugin_all(self, target: Any) -> Any:
        for interceptor in reversed(self._interceptors):
            target = interceptor.plugin(target)
        return target

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def interceptors(self) -> "tuple[Interceptor, ...]":
        return tuple(self._interceptors)

    def __len__(self) -> int:
        return len(self._interceptors)
