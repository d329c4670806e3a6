"""Handler registry -- explicit registration and entry-point discovery.

The :class:`HandlerRegistry` maps handler names to
:class:`~oauthbridge.handlers.base.CustomHandler` subclasses. Hosts inject
the handlers they support at construction; the call option
``<platform>.customHandlerClass`` then selects one of them by name. Nothing
is imported by arbitrary dotted path.

Third-party packages may also expose handlers through the
``oauthbridge.handlers`` entry-point group, picked up by :meth:`discover`::

    [project.entry-points."oauthbridge.handlers"]
    acme-sso = "acme_bridge.handler:AcmeSSOHandler"
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Mapping, Optional

from oauthbridge.exceptions import HandlerResolutionError
from oauthbridge.handlers.base import CustomHandler

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "oauthbridge.handlers"
"""The entry-point group name used for handler discovery."""


class HandlerRegistry:
    """Registry of custom handler classes keyed by name.

    Example::

        registry = HandlerRegistry({"acme": AcmeHandler})
        handler = registry.resolve("acme")
    """

    def __init__(self, handlers: Optional[Mapping[str, type[CustomHandler]]] = None) -> None:
        self._handlers: dict[str, type[CustomHandler]] = {}
        for name, handler_cls in (handlers or {}).items():
            self.register(name, handler_cls)

    def register(self, name: str, handler_cls: type[CustomHandler]) -> None:
        """Register *handler_cls* under *name*, replacing any previous entry."""
        self._handlers[name] = handler_cls

    def names(self) -> list[str]:
        """Return the sorted names of all registered handlers."""
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def discover(self) -> list[str]:
        """Register handlers advertised in the ``oauthbridge.handlers`` entry-point group.

        Entry points that fail to load are logged and skipped.

        Returns:
            Names of the handlers that were registered.
        """
        loaded: list[str] = []
        for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            try:
                handler_cls = ep.load()
            except Exception as exc:
                logger.warning("Failed to load handler '%s': %s", ep.name, exc)
                continue
            if not isinstance(handler_cls, type) or not issubclass(handler_cls, CustomHandler):
                logger.warning("Entry point '%s' is not a CustomHandler subclass", ep.name)
                continue
            self.register(ep.name, handler_cls)
            loaded.append(ep.name)
        return loaded

    def resolve(self, name: str) -> CustomHandler:
        """Instantiate the handler registered under *name*.

        Raises:
            HandlerResolutionError: If *name* is not registered or the
                handler's constructor raises.
        """
        handler_cls = self._handlers.get(name)
        if handler_cls is None:
            available = ", ".join(self.names()) or "(none)"
            raise HandlerResolutionError(
                f"No custom handler registered as '{name}'. Available handlers: {available}"
            )
        try:
            return handler_cls()
        except Exception as exc:
            raise HandlerResolutionError(
                f"Custom handler '{name}' could not be instantiated: {exc}"
            ) from exc
