"""Sort and multi-value filter parsing for view projections.

Sorting:
    - `updated_at` - Ascending by field
    - `-updated_at` - Descending (prefix with `-`)
    - `-urgency,company_name` - Multiple fields, comma-separated

Filtering:
    - `Applied` - Exact match
    - `Applied,Interview` - Match any (OR)
"""

from dataclasses import dataclass, field


def parse_sort(sort_param: str | None) -> list[tuple[str, str]]:
    """Parse a sort string into field/direction tuples.

    Args:
        sort_param: Raw sort string (e.g., "-urgency,company_name").

    Returns:
        List of (field_name, direction) tuples.
        Direction is "asc" or "desc".

    Examples:
        >>> parse_sort("-urgency,company_name")
        [('urgency', 'desc'), ('company_name', 'asc')]

        >>> parse_sort("updated_at")
        [('updated_at', 'asc')]
    """
    if not sort_param:
        return []

    result: list[tuple[str, str]] = []
    for part in sort_param.split(","):
        field_name = part.strip()
        if not field_name:
            continue

        if field_name.startswith("-"):
            result.append((field_name[1:].strip(), "desc"))
        else:
            result.append((field_name, "asc"))

    return result


def parse_filter_value(value: str | None) -> list[str]:
    """Parse a filter value into a list of values (for OR matching).

    Args:
        value: Raw filter value (e.g., "Applied,Interview").

    Returns:
        List of individual values, trimmed.

    Examples:
        >>> parse_filter_value("Applied,Interview")
        ['Applied', 'Interview']
    """
    if not value:
        return []

    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class SortParams:
    """Parsed sort parameters.

    Attributes:
        fields: List of (field_name, direction) tuples.
    """

    fields: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_query(cls, sort_param: str | None) -> "SortParams":
        """Create SortParams from a sort string.

        Args:
            sort_param: Raw sort string.

        Returns:
            Parsed SortParams instance.
        """
        return cls(fields=parse_sort(sort_param))

    def is_empty(self) -> bool:
        """Check if no sort fields are specified."""
        return len(self.fields) == 0
