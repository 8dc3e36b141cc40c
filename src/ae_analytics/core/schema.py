"""
Analytics Engine dataset layout.

Data points are written positionally (blobs for strings, doubles for numbers),
so every query has to translate logical field names into physical columns.
"""
from enum import Enum

DATASET = "metricsDataset"

# Weight attached to each stored row; SUM() it to recover real event counts.
SAMPLE_INTERVAL = "_sample_interval"

COLUMN_MAPPINGS: dict[str, str] = {
    "path": "blob3",
    "country": "blob4",
    "referrer": "blob5",
    "browserName": "blob6",
    "deviceModel": "blob7",
    "siteId": "blob8",
    "newVisitor": "double1",
    "newSession": "double2",
    "visitDuration": "double3",
    "pageViews": "double4",
}

# Filterable fields, in the order their clauses are emitted.
FILTERABLE_FIELDS: tuple[str, ...] = (
    "path",
    "referrer",
    "browserName",
    "country",
    "deviceModel",
)


def column_for(field: str) -> str:
    """Return the physical column for a logical field name.

    Raises:
        ValueError: If the field is not part of the dataset layout
    """
    try:
        return COLUMN_MAPPINGS[field]
    except KeyError:
        raise ValueError(f"Unknown analytics field: {field!r}") from None


class Dimension(str, Enum):
    """Categorical attributes a breakdown can be grouped by."""

    PATH = "path"
    REFERRER = "referrer"
    BROWSER = "browserName"
    COUNTRY = "country"
    DEVICE = "deviceModel"

    @property
    def column(self) -> str:
        return COLUMN_MAPPINGS[self.value]

    @property
    def includes_views(self) -> bool:
        """Path and referrer breakdowns report views next to visitors."""
        return self in (Dimension.PATH, Dimension.REFERRER)
