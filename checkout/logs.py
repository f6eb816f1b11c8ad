"""
Structured logging.

    from checkout import logs

    logs.configure(level="INFO", json_output=True)
    log = logs.get_logger("materializer")
    log.info("order_materialized", order_id=order.id)

Library modules only call get_logger(); configure() belongs to the process
entry point (API factory, scripts).
"""

from __future__ import annotations

import logging

import structlog


def configure(level: str = "INFO", json_output: bool = True) -> None:
    """Install the processor chain for the whole process."""
    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger().bind(component=component)


def bind_checkout(session_key: str) -> None:
    """Attach the checkout session to every log line in this task."""
    structlog.contextvars.bind_contextvars(checkout_session=session_key)


__all__ = ("configure", "get_logger", "bind_checkout")
