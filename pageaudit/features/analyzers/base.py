"""
Analyzer interface, page snapshot and registry.

Every analysis module is an Analyzer subclass registered under its module
name. Analyzers receive the same immutable Snapshot and return typed
findings; they never persist or score anything themselves.
"""
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Type

from bs4 import BeautifulSoup, Tag

from pageaudit.features.analysis.schemas.finding import Finding, Severity


@dataclass(frozen=True)
class Snapshot:
    """Rendered page as loaded once per analysis."""

    url: str
    html: str
    final_url: str = ""
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    load_time: float = 0.0

    def document(self) -> BeautifulSoup:
        """Parse a fresh document. Each analyzer gets its own tree."""
        return BeautifulSoup(self.html or "", "lxml")

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Snapshot":
        return cls(
            url=data["url"],
            html=data.get("html") or "",
            final_url=data.get("final_url") or data["url"],
            status_code=int(data.get("status_code") or 200),
            headers=dict(data.get("headers") or {}),
            load_time=float(data.get("load_time") or 0.0),
        )


def element_path(element: Tag) -> str:
    """CSS-like path to an element, anchored at the nearest ancestor with an id."""
    parts = []
    node = element
    while isinstance(node, Tag) and node.name not in (None, "[document]"):
        if node.get("id"):
            parts.append(f"{node.name}#{node['id']}")
            break
        parent = node.parent
        if isinstance(parent, Tag) and node.name not in ("html", "body"):
            siblings = parent.find_all(node.name, recursive=False)
            if len(siblings) > 1:
                position = next(i for i, sibling in enumerate(siblings, 1) if sibling is node)
                parts.append(f"{node.name}:nth-of-type({position})")
            else:
                parts.append(node.name)
        else:
            parts.append(node.name)
        node = parent
    return " > ".join(reversed(parts))


class Analyzer(ABC):
    """Base class for all analysis modules."""

    name: str = ""
    category: str = ""
    # None means the engine default applies.
    timeout_seconds: Optional[float] = None

    @abstractmethod
    def analyze(self, snapshot: Snapshot) -> List[Finding]:
        """Run the checks against a snapshot and return findings."""

    def finding(
        self,
        rule_id: str,
        severity: Severity,
        elements: Iterable[Tag],
        message: str,
        fix_suggestion: str = "",
        location_path: Optional[str] = None,
    ) -> Optional[Finding]:
        """
        One finding per rule: the count covers every offending element and the
        location points at the first one. Returns None when nothing offends.
        """
        elements = list(elements)
        if not elements:
            return None
        if location_path is None:
            location_path = element_path(elements[0]) if isinstance(elements[0], Tag) else ""
        return Finding(
            rule_id=rule_id,
            severity=severity,
            category=self.category,
            location_path=location_path,
            message=message,
            fix_suggestion=fix_suggestion,
            affected_element_count=len(elements),
        )

    def page_finding(
        self,
        rule_id: str,
        severity: Severity,
        message: str,
        fix_suggestion: str = "",
        location_path: str = "html",
    ) -> Finding:
        """Finding about the page as a whole rather than specific elements."""
        return Finding(
            rule_id=rule_id,
            severity=severity,
            category=self.category,
            location_path=location_path,
            message=message,
            fix_suggestion=fix_suggestion,
            affected_element_count=1,
        )


class AnalyzerRegistry:
    """Maps module names to analyzer classes or factories."""

    def __init__(self):
        self._analyzers: Dict[str, Callable[[], Analyzer]] = {}

    def register(self, cls: Type[Analyzer]) -> Type[Analyzer]:
        if not cls.name:
            raise ValueError(f"{cls.__name__} has no module name")
        self._analyzers[cls.name] = cls
        return cls

    def add(self, name: str, factory: Callable[[], Analyzer]) -> None:
        """Register a factory, for analyzers that need constructor arguments."""
        self._analyzers[name] = factory

    def get(self, name: str) -> Optional[Callable[[], Analyzer]]:
        return self._analyzers.get(name)

    def create(self, name: str) -> Optional[Analyzer]:
        factory = self.get(name)
        return factory() if factory is not None else None

    def names(self) -> List[str]:
        return sorted(self._analyzers)

    def categories(self) -> List[str]:
        return sorted({
            getattr(factory, "category", "") for factory in self._analyzers.values()
        } - {""})

    def __contains__(self, name: str) -> bool:
        return name in self._analyzers


registry = AnalyzerRegistry()
register = registry.register
