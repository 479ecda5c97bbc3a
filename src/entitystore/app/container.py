"""
Dependency Injection Container

Service registration, resolution and lifetime management for entity stores.
Besides plain types and string keys, services can be keyed by closed generic
aliases such as ``EntityStore[Order]`` and supplied for every argument at
once through open-generic factories.
"""

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin
)

T = TypeVar('T')

logger = logging.getLogger(__name__)


class ServiceScope(Enum):
    """Service lifetime scopes"""
    SINGLETON = "singleton"      # One instance for entire application
    TRANSIENT = "transient"      # New instance every time
    SCOPED = "scoped"            # One instance per scope (e.g., per request)


class DIError(Exception):
    """Base exception for dependency injection errors"""
    pass


class ServiceNotFoundError(DIError):
    """Raised when a service is not registered"""
    pass


class CircularDependencyError(DIError):
    """Raised when circular dependencies are detected"""
    pass


class ServiceConfigurationError(DIError):
    """Raised when service configuration is invalid"""
    pass


DEFAULT_SCOPE = "default"


@dataclass
class ServiceRegistration:
    """Service registration information"""
    service_key: str
    implementation: Union[Type, Callable, Any]
    scope: ServiceScope = ServiceScope.SINGLETON
    factory: Optional[Callable] = None
    config: Dict[str, Any] = field(default_factory=dict)
    type_args: Tuple[Any, ...] = ()
    registered_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.factory is not None and not callable(self.factory):
            raise ServiceConfigurationError("Factory must be callable")


@dataclass
class OpenGenericRegistration:
    """Factory producing closed services for any type arguments of a generic"""
    generic: Any
    factory: Callable[..., Any]
    scope: ServiceScope = ServiceScope.SINGLETON
    registered_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not callable(self.factory):
            raise ServiceConfigurationError("Open generic factory must be callable")

    def close(self, service_key: str, type_args: Tuple[Any, ...]) -> ServiceRegistration:
        return ServiceRegistration(
            service_key=service_key,
            implementation=self.factory,
            scope=self.scope,
            type_args=type_args,
        )


def get_service_key(service_type: Any) -> str:
    """
    Normalized registry key for a service type.

    Closed generics include their arguments, so ``EntityStore[Order]`` and
    ``EntityStore[Customer]`` are distinct services.
    """
    if isinstance(service_type, str):
        return service_type
    origin = get_origin(service_type)
    if origin is not None:
        args = ", ".join(get_service_key(arg) for arg in get_args(service_type))
        return f"{get_service_key(origin)}[{args}]"
    if isinstance(service_type, type):
        return f"{service_type.__module__}.{service_type.__qualname__}"
    return str(service_type)


class DIContainer:
    """
    Dependency injection container.

    Supports singleton, transient and scoped lifetimes, constructor injection
    by parameter annotation, factories, and open-generic factories invoked as
    ``factory(container, *type_args)``. Nested resolutions inherit the scope
    of the outermost ``get`` call; that resolution state is kept per thread.
    """

    def __init__(self):
        self._registrations: Dict[str, ServiceRegistration] = {}
        self._open_generics: Dict[str, OpenGenericRegistration] = {}
        self._singletons: Dict[str, Any] = {}
        self._scoped_instances: Dict[str, Dict[str, Any]] = {}
        self._local = threading.local()
        self._is_shutdown = False

        self.register_singleton(DIContainer, self)

    @property
    def _resolution_stack(self) -> List[str]:
        """Keys being resolved on the calling thread, outermost first"""
        if not hasattr(self._local, "resolution_stack"):
            self._local.resolution_stack = []
        return self._local.resolution_stack

    @property
    def _scope_stack(self) -> List[str]:
        if not hasattr(self._local, "scope_stack"):
            self._local.scope_stack = []
        return self._local.scope_stack

    def register(
        self,
        service_type: Any,
        implementation: Any = None,
        scope: ServiceScope = ServiceScope.SINGLETON,
        factory: Optional[Callable] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> 'DIContainer':
        """
        Register a service with the container.

        A later registration for the same key replaces the earlier one.

        Args:
            service_type: The service type, closed generic alias or string key
            implementation: The implementation class, instance, or factory
            scope: Service lifetime scope
            factory: Optional factory function
            config: Keyword arguments passed to the implementation or factory

        Returns:
            Self for method chaining
        """
        if self._is_shutdown:
            raise DIError("Cannot register services after shutdown")

        service_key = get_service_key(service_type)

        if implementation is None and factory is None:
            if isinstance(service_type, type):
                implementation = service_type
            else:
                raise ServiceConfigurationError(f"Implementation required for key: {service_key}")

        self._registrations[service_key] = ServiceRegistration(
            service_key=service_key,
            implementation=implementation,
            scope=scope,
            factory=factory,
            config=config or {},
        )
        self._singletons.pop(service_key, None)
        return self

    def register_singleton(self, service_type: Any, implementation: Any) -> 'DIContainer':
        """Register a singleton service"""
        return self.register(service_type, implementation, ServiceScope.SINGLETON)

    def register_transient(self, service_type: Any, implementation: Any) -> 'DIContainer':
        """Register a transient service"""
        return self.register(service_type, implementation, ServiceScope.TRANSIENT)

    def register_scoped(self, service_type: Any, implementation: Any) -> 'DIContainer':
        """Register a service with one instance per scope"""
        return self.register(service_type, implementation, ServiceScope.SCOPED)

    def register_factory(self, service_type: Any, factory: Callable[..., Any],
                         scope: ServiceScope = ServiceScope.SINGLETON) -> 'DIContainer':
        """Register a service with a factory function"""
        return self.register(service_type, None, scope=scope, factory=factory)

    def register_open_generic(self, generic: Any, factory: Callable[..., Any],
                              scope: ServiceScope = ServiceScope.SINGLETON) -> 'DIContainer':
        """
        Register a factory for every closed form of a generic type.

        Example:
            container.register_open_generic(
                EntityStore, lambda c, entity_type: MemoryEntityStore(entity_type)
            )
            container.get(EntityStore[Order])
        """
        if self._is_shutdown:
            raise DIError("Cannot register services after shutdown")
        generic_key = get_service_key(generic)
        self._open_generics[generic_key] = OpenGenericRegistration(generic, factory, scope)
        # Drop cached closed instances built by a replaced factory
        prefix = f"{generic_key}["
        for key in [k for k in self._singletons if k.startswith(prefix)]:
            del self._singletons[key]
        return self

    def get(self, service_type: Any, scope_id: Optional[str] = None) -> Any:
        """
        Get a service instance.

        Args:
            service_type: The service type, closed generic alias or string key
            scope_id: Scope identifier for scoped services; defaults to the
                scope of an enclosing resolution, then ``"default"``

        Returns:
            The service instance

        Raises:
            ServiceNotFoundError: If nothing is registered for the key
            CircularDependencyError: If resolution re-enters the same key
        """
        if self._is_shutdown:
            raise DIError("Container is shut down")

        service_key = get_service_key(service_type)
        registration = self._find_registration(service_type, service_key)
        if registration is None:
            raise ServiceNotFoundError(f"Service not registered: {service_key}")

        if service_key in self._resolution_stack:
            cycle = " -> ".join(self._resolution_stack + [service_key])
            raise CircularDependencyError(f"Circular dependency detected: {cycle}")

        if scope_id is None:
            scope_id = self._scope_stack[-1] if self._scope_stack else DEFAULT_SCOPE

        self._resolution_stack.append(service_key)
        self._scope_stack.append(scope_id)
        try:
            if registration.scope == ServiceScope.SINGLETON:
                return self._get_singleton(service_key, registration)
            elif registration.scope == ServiceScope.TRANSIENT:
                return self._create_instance(registration)
            elif registration.scope == ServiceScope.SCOPED:
                return self._get_scoped(service_key, registration, scope_id)
            else:
                raise ServiceConfigurationError(f"Unknown scope: {registration.scope}")
        finally:
            self._scope_stack.pop()
            self._resolution_stack.pop()

    def try_get(self, service_type: Any, scope_id: Optional[str] = None) -> Optional[Any]:
        """Try to get a service, returning None if not registered"""
        try:
            return self.get(service_type, scope_id)
        except ServiceNotFoundError:
            return None

    def is_registered(self, service_type: Any) -> bool:
        """Check if a service is registered directly or through an open generic"""
        return self._find_registration(service_type, get_service_key(service_type)) is not None

    async def end_scope(self, scope_id: str) -> None:
        """Dispose and forget every instance created for a scope"""
        instances = self._scoped_instances.pop(scope_id, {})
        await self._dispose_all(list(instances.values()))

    async def shutdown(self) -> None:
        """Dispose scoped and singleton instances; the container is unusable afterwards"""
        if self._is_shutdown:
            return
        instances: List[Any] = []
        for scope_instances in self._scoped_instances.values():
            instances.extend(scope_instances.values())
        instances.extend(i for i in self._singletons.values() if i is not self)
        self._scoped_instances.clear()
        self._singletons.clear()
        self._is_shutdown = True
        await self._dispose_all(instances)

    def _find_registration(self, service_type: Any, service_key: str) -> Optional[ServiceRegistration]:
        registration = self._registrations.get(service_key)
        if registration is not None:
            return registration

        origin = get_origin(service_type)
        if origin is None:
            return None
        open_registration = self._open_generics.get(get_service_key(origin))
        if open_registration is None:
            return None
        return open_registration.close(service_key, get_args(service_type))

    def _get_singleton(self, service_key: str, registration: ServiceRegistration) -> Any:
        if service_key not in self._singletons:
            self._singletons[service_key] = self._create_instance(registration)
        return self._singletons[service_key]

    def _get_scoped(self, service_key: str, registration: ServiceRegistration, scope_id: str) -> Any:
        scope_instances = self._scoped_instances.setdefault(scope_id, {})
        if service_key not in scope_instances:
            scope_instances[service_key] = self._create_instance(registration)
        return scope_instances[service_key]

    def _create_instance(self, registration: ServiceRegistration) -> Any:
        if registration.type_args:
            return registration.implementation(self, *registration.type_args)

        if registration.factory:
            return self._invoke_factory(registration.factory, registration.config)
        elif inspect.isclass(registration.implementation):
            return self._invoke_factory(registration.implementation, registration.config)
        elif callable(registration.implementation):
            return self._invoke_factory(registration.implementation, registration.config)
        else:
            # Return instance as-is
            return registration.implementation

    def _invoke_factory(self, factory: Callable, config: Dict[str, Any]) -> Any:
        """Invoke a class or factory, injecting annotated parameters not in config"""
        kwargs = dict(config)
        signature = inspect.signature(factory)

        for param_name, param in signature.parameters.items():
            if param_name in kwargs or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if param.annotation is inspect.Parameter.empty:
                continue
            if param.default is not inspect.Parameter.empty and not self.is_registered(param.annotation):
                continue
            kwargs[param_name] = self.get(param.annotation)

        return factory(**kwargs)

    async def _dispose_all(self, instances: List[Any]) -> None:
        """Close every instance exposing close() or dispose(); re-raise the first failure"""
        first_error: Optional[BaseException] = None
        for instance in instances:
            disposer = getattr(instance, "close", None) or getattr(instance, "dispose", None)
            if disposer is None:
                continue
            try:
                result = disposer()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error disposing {type(instance).__name__}: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error


__all__ = [
    "DIContainer", "ServiceScope", "ServiceRegistration", "OpenGenericRegistration",
    "DIError", "ServiceNotFoundError", "CircularDependencyError", "ServiceConfigurationError",
    "get_service_key",
]
