"""
Structured logging for the memory engine.
Every engine component logs through the shared `logger` instance below.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for indexing, vector store and retrieval operations."""

    def __init__(self, name: str = "memory_guardian"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_vector_operation(self, operation: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector store operation."""
        level = logging.WARNING if status in ("skipped", "rejected") else logging.INFO
        if status == "failed":
            level = logging.ERROR
        self.log_operation(f"vector.{operation}", status, details, level)

    def log_task_event(self, task_id: str, event: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log an indexing task lifecycle event."""
        log_details = {"task_id": task_id}
        if details:
            log_details.update(details)

        level = logging.ERROR if status == "failed" else logging.DEBUG
        self.log_operation(f"task.{event}", status, log_details, level)

    def log_retrieval(self, query: str, result_count: int, elapsed_ms: float, status: str = "success", details: Dict[str, Any] = None):
        """Log a retrieval request."""
        log_details = {
            "query": query[:50] + "..." if len(query) > 50 else query,
            "result_count": result_count,
            "elapsed_ms": round(elapsed_ms, 2),
        }
        if details:
            log_details.update(details)

        level = logging.WARNING if status == "slow" else logging.INFO
        self.log_operation("retrieval.query", status, log_details, level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)

    def set_debug(self, enabled: bool) -> None:
        """Switch between DEBUG and INFO verbosity."""
        self.logger.setLevel(logging.DEBUG if enabled else logging.INFO)


# Global logger instance
logger = StructuredLogger()
