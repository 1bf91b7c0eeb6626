"""
Finding and Severity, the unit every analyzer produces.
"""
import enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Severity(str, enum.Enum):
    """Ordered severity levels, minor < moderate < serious < critical."""
    minor = "minor"
    moderate = "moderate"
    serious = "serious"
    critical = "critical"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @classmethod
    def parse(cls, value, default: "Severity" = None):
        """Return the matching Severity, or default when value is not a known level."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return default


_RANK = {
    Severity.minor: 1,
    Severity.moderate: 2,
    Severity.serious: 3,
    Severity.critical: 4,
}


class Finding(BaseModel):
    """A single rule violation on a page. Immutable once created."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    rule_id: str
    severity: Severity
    category: str
    location_path: str = ""
    message: str
    fix_suggestion: str = ""
    affected_element_count: int = Field(default=1, ge=1)
