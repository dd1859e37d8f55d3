"""
MoonTV Advisor Logging Configuration - Color-Coded Container Logs

Provides:
- ColorFormatter: ANSI color-coded log output
- Helper functions: log_message_in, log_message_out, log_source, log_llm, log_decision
- setup_logging(): Configure application logging

Usage:
    from logging_config import setup_logging, log_message_in, log_source
    setup_logging()
    logger = logging.getLogger(__name__)
    log_message_in(logger, "推荐一些高分电影", history=2)
"""

import logging
import sys

# ANSI color codes
COLORS = {
    "RESET": "\033[0m",
    "BOLD": "\033[1m",
    "DIM": "\033[2m",
    # Event colors
    "MSG_IN": "\033[96m",  # Cyan - incoming message
    "MSG_OUT": "\033[92m",  # Green - outgoing stream
    "DECISION": "\033[95m",  # Magenta - source decision
    "SOURCE": "\033[93m",  # Yellow - data source calls
    "LLM": "\033[94m",  # Blue - LLM operations
    "ERROR": "\033[91m",  # Red - errors
    "WARN": "\033[33m",  # Orange/Yellow - warnings
    "DEBUG": "\033[90m",  # Gray - debug info
}


class ColorFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    LEVEL_COLORS = {
        logging.DEBUG: COLORS["DEBUG"],
        logging.INFO: COLORS["RESET"],
        logging.WARNING: COLORS["WARN"],
        logging.ERROR: COLORS["ERROR"],
        logging.CRITICAL: COLORS["ERROR"] + COLORS["BOLD"],
    }

    def format(self, record: logging.LogRecord) -> str:
        # Apply level-based color
        color = self.LEVEL_COLORS.get(record.levelno, COLORS["RESET"])

        # Format: timestamp [LEVEL] message (no module name for compactness)
        timestamp = self.formatTime(record, "%H:%M:%S")
        level = record.levelname[:4]

        formatted = (
            f"{COLORS['DIM']}{timestamp}{COLORS['RESET']} "
            f"[{color}{level}{COLORS['RESET']}] "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logging(level: int = logging.INFO) -> None:
    """Configure colored logging for the application."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter())

    # Configure root logger
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# =============================================================================
# COLORED LOG HELPER FUNCTIONS
# =============================================================================


def log_message_in(logger: logging.Logger, message: str, **context) -> None:
    """Log incoming chat message.

    Args:
        logger: Logger instance
        message: User message text
        **context: Additional context (user, history, title, etc.)
    """
    preview = message[:50] + "..." if len(message) > 50 else message
    ctx = " ".join(f"{k}={v}" for k, v in context.items())
    logger.info(f"{COLORS['MSG_IN']}>>> MESSAGE{COLORS['RESET']} {preview} [{ctx}]")


def log_message_out(logger: logging.Logger, events: int = 0, done: bool = True) -> None:
    """Log the end of a relayed stream.

    Args:
        logger: Logger instance
        events: Number of text events relayed to the browser
        done: Whether the sentinel was emitted
    """
    logger.info(f"{COLORS['MSG_OUT']}<<< STREAM{COLORS['RESET']} events={events} done={done}")


def log_source(
    logger: logging.Logger,
    source: str,
    state: str,
    **context,
) -> None:
    """Log a data source call.

    Args:
        logger: Logger instance
        source: Data source name (web_search, douban, tmdb)
        state: 'start' or 'end'
        **context: Additional context (query, id, ok, etc.)
    """
    ctx = " ".join(f"{k}={v}" for k, v in context.items()) if context else ""
    if state == "start":
        logger.info(f"{COLORS['SOURCE']}>>> SOURCE{COLORS['RESET']} {source} {ctx}")
    else:
        logger.info(f"{COLORS['SOURCE']}<<< SOURCE{COLORS['RESET']} {source} {ctx}")


def log_decision(logger: logging.Logger, origin: str, web: bool, douban: bool, tmdb: bool) -> None:
    """Log the resolved data source plan.

    Args:
        logger: Logger instance
        origin: 'decision_model' or 'intent'
        web: Web search requested
        douban: Douban requested
        tmdb: TMDB requested
    """
    logger.info(
        f"{COLORS['DECISION']}... PLAN{COLORS['RESET']} "
        f"via={origin} web={web} douban={douban} tmdb={tmdb}"
    )


def log_llm(
    logger: logging.Logger,
    state: str,
    model: str = "",
    duration: float = 0,
) -> None:
    """Log LLM call.

    Args:
        logger: Logger instance
        state: 'start' or 'end'
        model: Model name
        duration: Call duration in seconds (for end state)
    """
    if state == "start":
        logger.info(f"{COLORS['LLM']}>>> LLM{COLORS['RESET']} calling {model}")
    else:
        logger.info(f"{COLORS['LLM']}<<< LLM{COLORS['RESET']} " f"{model} completed in {duration:.1f}s")
