"""Structured logging helpers (PII-safe)."""

from typing import Any

from levsarah.utils.normalization import extract_phone_last4


def build_log_context(
    *,
    user_id: str | None = None,
    profile_id: str | None = None,
    phone: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict. Phones are reduced to their last 4 digits."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if profile_id:
        context["profile_id"] = profile_id
    if phone:
        context["phone_last4"] = extract_phone_last4(phone)
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
