"""Shared query parameter parsing utilities."""

from fastapi import HTTPException

from models.performance_snapshot import OVERALL_SCOPE


def parse_account_ids(account_ids: str | None) -> list[str] | None:
    """Parse a comma-separated account IDs string into a list.

    Args:
        account_ids: Comma-separated string of account IDs, or None.

    Returns:
        List of stripped IDs, or None if input is empty. An input made only
        of separators (e.g. ``","``) yields an empty list so the caller can
        reject it as an empty selection.
    """
    if account_ids is None or account_ids == "":
        return None
    return [aid.strip() for aid in account_ids.split(",") if aid.strip()]


def parse_scope_selector(scope: str | None, account_ids: str | None) -> str | list[str]:
    """Combine the ``scope`` and ``account_ids`` query params into one selector.

    Raises:
        HTTPException: 400 if both are given.
    """
    parsed = parse_account_ids(account_ids)
    if parsed is not None:
        if scope and scope != OVERALL_SCOPE:
            raise HTTPException(
                status_code=400,
                detail="Use either scope or account_ids, not both",
            )
        return parsed
    return scope or OVERALL_SCOPE
