"""Utility functions for the notebook store."""

from typing import Any, Iterable, List

from notebook_store.exceptions import BulkOperationError


def escape_like_pattern(value: str) -> str:
    """Escape SQL LIKE wildcards to treat them as literals.

    Prevents SQL LIKE pattern injection where user input containing
    '%' or '_' could match unintended patterns.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for safe use in LIKE clauses

    Example:
        >>> escape_like_pattern("100% complete")
        '100\\% complete'
        >>> escape_like_pattern("file_name")
        'file\\_name'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def normalize_id_batch(note_ids: Any, operation: str) -> List[str]:
    """Validate a batch of identifiers and drop duplicates, keeping order.

    Args:
        note_ids: Any iterable of identifiers (list, set, tuple, generator).
        operation: Bulk operation name used in the error.

    Returns:
        The distinct identifiers in first-seen order.

    Raises:
        BulkOperationError: If the input is not an iterable of non-empty
            strings. A bare string is rejected rather than iterated.
    """
    if isinstance(note_ids, (str, bytes)) or not isinstance(note_ids, Iterable):
        raise BulkOperationError(
            "Note IDs must be a collection of identifiers",
            operation=operation,
        )

    seen = set()
    ordered: List[str] = []
    for note_id in note_ids:
        if not isinstance(note_id, str) or not note_id.strip():
            raise BulkOperationError(
                f"Invalid note ID in batch: {note_id!r}",
                operation=operation,
            )
        if note_id not in seen:
            seen.add(note_id)
            ordered.append(note_id)
    return ordered
