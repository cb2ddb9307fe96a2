from __future__ import annotations


def format_identifier(
    prefix: str,
    value: int,
    width: int,
    group_size: int | None = None,
    separator: str = "-",
) -> str:
    """Format ``value`` as a zero-padded display identifier.

    ``format_identifier("CAD", 123, 6)`` gives ``CAD-000123`` and
    ``format_identifier("", 1, 9, 3)`` gives ``000-000-001``. Values wider
    than ``width`` keep all of their digits.
    """

    if value < 0:
        raise ValueError(f"identifier value must be non-negative, got {value}")
    if width < 1:
        raise ValueError(f"identifier width must be positive, got {width}")
    digits = f"{value:0{width}d}"
    if group_size is not None:
        if group_size < 1:
            raise ValueError(f"group size must be positive, got {group_size}")
        digits = separator.join(
            digits[i : i + group_size] for i in range(0, len(digits), group_size)
        )
    if not prefix:
        return digits
    return f"{prefix}{separator}{digits}"


def parse_identifier(prefix: str, identifier: str | None, separator: str = "-") -> int | None:
    """Return the numeric part of an identifier or None if it does not match."""

    if not identifier:
        return None
    text = identifier.strip()
    if prefix:
        head = f"{prefix}{separator}"
        if not text.upper().startswith(head.upper()):
            return None
        text = text[len(head) :]
    digits = text.replace(separator, "")
    if not digits.isdigit():
        return None
    return int(digits)
