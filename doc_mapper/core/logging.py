"""Log output for doc_mapper.

Library modules log through stdlib ``logging.getLogger(__name__)`` and never
configure anything on import. ``configure_logging`` attaches one structlog
formatter to the ``doc_mapper`` logger so applications can opt into readable
or JSON output.
"""

from __future__ import annotations

import logging
import sys

import structlog

PACKAGE_LOGGER = "doc_mapper"


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route ``doc_mapper.*`` records to stderr through structlog.

    Args:
        verbose: Emit DEBUG records (metadata resolution, cache hits).
            Only WARNING and above otherwise.
        log_json: One JSON object per line instead of console output.
    """
    renderer: structlog.types.Processor
    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False
