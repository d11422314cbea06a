import logging
import sys

import structlog

_configured = False


def configure_logging(level: str = "INFO", fmt: str = "json", stream: str = "stdout"):
    """Route structlog through stdlib logging. Safe to call more than once."""
    global _configured

    log_level = getattr(logging, str(level).upper(), logging.INFO)
    root = logging.getLogger()
    if not _configured:
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stderr if stream == "stderr" else sys.stdout,
            level=log_level,
        )
    root.setLevel(log_level)

    renderer = structlog.dev.ConsoleRenderer() if fmt == "console" else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True
