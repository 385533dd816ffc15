"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    import_id: int | None = None,
    branch_id: int | None = None,
    user_id: int | None = None,
    subscription_id: int | None = None,
    row_number: int | None = None,
) -> dict[str, Any]:
    """Return a log context dict carrying identifiers only, never row contents."""
    context: dict[str, Any] = {}
    if import_id is not None:
        context["import_id"] = import_id
    if branch_id is not None:
        context["branch_id"] = branch_id
    if user_id is not None:
        context["user_id"] = user_id
    if subscription_id is not None:
        context["subscription_id"] = subscription_id
    if row_number is not None:
        context["row_number"] = row_number
    return context


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for CLI and scheduled processes."""
    import logging

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
