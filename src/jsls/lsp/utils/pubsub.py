"""
Message Bus - publish/subscribe coordination between LSP features.

Features never talk to each other directly. A feature that produces an event
publishes it under a message name; any feature interested in it subscribes a
handler under that name. The host also publishes the transport's document and
workspace notifications here, so every feature can react to them without
registering duplicate protocol handlers.

Architecture:
- One bus per server instance, shared by the host and every feature
- Handlers may be plain callables or coroutine functions
- Message names are dotted; a handler subscribed to ``document`` also
  receives ``document.opened`` and ``document.closed``
- Error isolation - a failing handler never stops its siblings

Usage Pattern:
1. Feature subscribes during ``load`` and keeps the returned token
2. Host or another feature publishes
3. Feature unsubscribes with its token during ``on_shutdown``
"""

import asyncio
import inspect
import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Set


logger = logging.getLogger(__name__)


Handler = Callable[[str, Any], Any]
FaultSink = Callable[[str, BaseException], None]


class Messages:
    """
    Well-known message names published on the bus.

    Document and workspace messages are published by the host when the
    transport delivers the matching notification.
    """

    DOCUMENT = "document"
    DOCUMENT_OPENED = "document.opened"
    DOCUMENT_CHANGED = "document.changed"
    DOCUMENT_CLOSED = "document.closed"

    WORKSPACE = "workspace"
    WATCHED_FILES_CHANGED = "workspace.filesChanged"
    WORKSPACE_FOLDERS_CHANGED = "workspace.foldersChanged"
    CONFIGURATION_CHANGED = "workspace.configurationChanged"

    COMPLETIONS = "completions"


class MessageBusError(Exception):
    """Raised by ``publish_async`` when one or more handlers failed."""

    def __init__(self, message: str, errors: List[BaseException]):
        self.message = message
        self.errors = errors
        super().__init__(f"{len(errors)} handler(s) failed for '{message}': "
                         f"{'; '.join(str(e) for e in errors)}")


def log_handler_fault(message: str, error: BaseException) -> None:
    """Default fault sink: record the failure and keep going."""
    logger.error(f"Error in handler for '{message}': {error}", exc_info=error)


class MessageBus:
    """
    Process-wide publish/subscribe registry keyed by message name.

    ``publish`` is fire-and-forget: synchronous handlers run to completion
    before it returns, coroutine handlers are detached onto the running event
    loop and their outcome only reaches the fault sink. ``publish_async``
    waits for every handler and raises ``MessageBusError`` if any failed.

    The bus holds no lock; it relies on the server's single-threaded event
    loop for consistency.
    """

    def __init__(self, fault_sink: Optional[FaultSink] = None):
        """
        Initialize an empty bus.

        Args:
            fault_sink: Receives ``(message, error)`` for every handler failure
                that is not propagated to a caller. Defaults to logging.
        """
        self._subscriptions: Dict[str, Dict[str, Handler]] = {}
        self._counter = itertools.count()
        self._fault_sink = fault_sink or log_handler_fault
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, message: str, handler: Handler) -> str:
        """
        Register a handler for a message name.

        Args:
            message: Non-empty message name
            handler: Callable or coroutine function taking ``(message, data)``

        Returns:
            Token identifying this subscription

        Raises:
            ValueError: If the message name is empty or handler is None
        """
        if not message:
            raise ValueError("Message name cannot be empty")
        if handler is None:
            raise ValueError("Handler cannot be None")

        token = f"pubsub_subscription_{next(self._counter)}"
        self._subscriptions.setdefault(message, {})[token] = handler
        logger.debug(f"Subscribed {token} to '{message}'")
        return token

    def unsubscribe(self, message: str, token: str) -> None:
        """
        Remove the handler registered under ``token`` for ``message``.

        Unknown messages or tokens are ignored.
        """
        handlers = self._subscriptions.get(message)
        if not handlers or token not in handlers:
            return

        del handlers[token]
        if not handlers:
            del self._subscriptions[message]
        logger.debug(f"Unsubscribed {token} from '{message}'")

    def handler_count(self, message: str) -> int:
        """Get the number of handlers subscribed directly to ``message``."""
        return len(self._subscriptions.get(message, {}))

    def clear(self) -> None:
        """Drop every subscription."""
        count = sum(len(handlers) for handlers in self._subscriptions.values())
        self._subscriptions.clear()
        logger.info(f"Cleared {count} message bus subscriptions")

    def publish(self, message: str, data: Any = None) -> None:
        """
        Deliver ``data`` to every handler subscribed to ``message``.

        Synchronous handlers run in subscription order before this returns.
        Coroutine handlers are scheduled and not awaited.

        Args:
            message: Message name being published
            data: Payload passed to each handler
        """
        for handler in self._matching_handlers(message):
            try:
                result = handler(message, data)
            except Exception as e:
                self._fault_sink(message, e)
                continue

            if inspect.isawaitable(result):
                self._detach(message, result)

    async def publish_async(self, message: str, data: Any = None) -> None:
        """
        Deliver ``data`` to every handler and wait for all of them to settle.

        Args:
            message: Message name being published
            data: Payload passed to each handler

        Raises:
            MessageBusError: If any handler raised, after all have settled
        """
        errors: List[BaseException] = []
        awaitables = []

        for handler in self._matching_handlers(message):
            try:
                result = handler(message, data)
            except Exception as e:
                errors.append(e)
                continue

            if inspect.isawaitable(result):
                awaitables.append(result)

        if awaitables:
            results = await asyncio.gather(*awaitables, return_exceptions=True)
            errors.extend(r for r in results if isinstance(r, Exception))

        if errors:
            raise MessageBusError(message, errors)

    def _matching_handlers(self, message: str) -> List[Handler]:
        """Snapshot the handlers for ``message`` and its parent topics."""
        handlers: List[Handler] = []
        for subscribed, entries in self._subscriptions.items():
            if subscribed == message or message.startswith(f"{subscribed}."):
                handlers.extend(entries.values())
        return handlers

    def _detach(self, message: str, awaitable) -> None:
        """Run a coroutine handler in the background, reporting its failure."""
        try:
            loop = asyncio.get_running_loop()
            task = asyncio.ensure_future(awaitable, loop=loop)
        except RuntimeError as e:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._fault_sink(message, e)
            return

        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                self._fault_sink(message, error)

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for every detached handler to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
