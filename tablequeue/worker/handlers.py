"""
Job handlers registry and implementations.

Handlers must be idempotent: a job whose lease expires before it is
released is delivered again, possibly while the first run is still going.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable

from tablequeue.types.job import Message

logger = logging.getLogger(__name__)

# A handler receives the message and returns True when the job is complete
MessageHandler = Callable[[Message], bool | Awaitable[bool]]

# Handler registry
_handlers: dict[str, MessageHandler] = {}


def register_handler(handler_name: str) -> Callable[[MessageHandler], MessageHandler]:
    """
    Decorator to register a message handler.

    Args:
        handler_name: The message handler_name this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("send_email")
        async def handle_send_email(message: Message) -> bool:
            ...
    """
    def decorator(handler: MessageHandler) -> MessageHandler:
        _handlers[handler_name] = handler
        logger.debug(f"Registered handler: {handler_name}")
        return handler
    return decorator


def get_handler(handler_name: str) -> MessageHandler | None:
    """
    Get the handler for a handler name.

    Args:
        handler_name: The handler name.

    Returns:
        The handler function or None if not found.
    """
    return _handlers.get(handler_name)


def list_handlers() -> list[str]:
    """List all registered handler names."""
    return list(_handlers.keys())


async def dispatch(message: Message) -> bool:
    """
    Route a message to its registered handler.

    Messages without a handler are not completed, so they stay reserved
    and come back after their lease expires; deploying the missing
    handler lets them through.

    Args:
        message: The reserved message.

    Returns:
        The handler's verdict, or False if no handler is registered.
    """
    handler = get_handler(message.handler_name)
    if handler is None:
        logger.error(
            "No handler registered",
            extra={
                "handler_name": message.handler_name,
                "available": list_handlers(),
            },
        )
        return False

    result = handler(message)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


# ============================================================================
# Built-in handlers
# ============================================================================


@register_handler("echo")
async def handle_echo(message: Message) -> bool:
    """Log the message data and succeed. Useful for smoke tests."""
    logger.info("Echo", extra={"data": message.data})
    return True


@register_handler("sleep")
async def handle_sleep(message: Message) -> bool:
    """
    Sleep for a while, then succeed.

    Data may contain:
    - duration_seconds: How long to sleep (default 1)
    """
    data = message.data if isinstance(message.data, dict) else {}
    duration = data.get("duration_seconds", 1)
    await asyncio.sleep(duration)
    return True


@register_handler("failing_job")
async def handle_failing_job(message: Message) -> bool:
    """Never completes; exercises redelivery after lease expiry."""
    logger.info("Failing job executing (will not complete)")
    return False
