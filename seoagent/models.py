"""Core data models shared across seoagent components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union


class Framework(str, Enum):
    """Site frameworks recognised by the detector."""

    NEXTJS_APP = "nextjs-app"
    NEXTJS_PAGES = "nextjs-pages"
    ASTRO = "astro"
    NUXT = "nuxt"
    GATSBY = "gatsby"
    REMIX = "remix"
    SVELTEKIT = "sveltekit"
    VITE_REACT = "vite-react"
    VITE_VUE = "vite-vue"
    HTML = "html"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


class FixAction(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


# Metered resource kinds tracked by the budget guard.
RESOURCE_AI_COMPLETION = "ai-completion"
RESOURCE_IMAGE = "image"
RESOURCE_BLOG_POST = "blog-post"

DEFAULT_DAILY_LIMITS: Dict[str, int] = {
    RESOURCE_AI_COMPLETION: 20,
    RESOURCE_IMAGE: 3,
    RESOURCE_BLOG_POST: 1,
}

CHANGE_TYPES = (
    "meta-title",
    "meta-description",
    "og-tags",
    "schema",
    "sitemap",
    "robots",
    "alt-text",
    "blog-published",
    "image-added",
    "content-update",
)


def path_in_zone(path: str, pattern: str) -> bool:
    """Return True when ``path`` falls under a zone pattern (glob or directory prefix)."""
    pattern = pattern.strip().strip("/")
    if not pattern:
        return False
    path = path.strip("/")
    if path == pattern or path.startswith(f"{pattern}/"):
        return True
    return fnmatchcase(path, pattern)


@dataclass(frozen=True)
class RepoSettings:
    """Per-repository tuning taken from configuration."""

    content_frequency: str = "weekly"
    tone: str = "professional"
    topics: Tuple[str, ...] = ()
    exclude_paths: Tuple[str, ...] = ()
    daily_limits: Mapping[str, int] = field(default_factory=dict)
    custom_instructions: Optional[str] = None

    def limit_for(self, kind: str) -> int:
        if kind in self.daily_limits:
            return self.daily_limits[kind]
        return DEFAULT_DAILY_LIMITS.get(kind, 0)


@dataclass(frozen=True)
class RepositoryTarget:
    """A remote repository the agent is allowed to mutate."""

    id: str
    url: str
    branch: str = "main"
    domain: str = ""
    search_console: Optional[str] = None
    settings: RepoSettings = field(default_factory=RepoSettings)

    @property
    def site_name(self) -> str:
        host = self.domain.split("://", 1)[-1].strip("/")
        return host or self.id


@dataclass
class ImageRef:
    src: str
    alt: Optional[str] = None


@dataclass
class PageInfo:
    """Structural facts about one routable page."""

    path: str
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    has_og_image: bool = False
    has_schema: bool = False
    word_count: int = 0
    images: List[ImageRef] = field(default_factory=list)
    internal_links: List[str] = field(default_factory=list)


@dataclass
class DirectoryRoles:
    pages_dir: Optional[str] = None
    components_dir: Optional[str] = None
    public_dir: Optional[str] = None
    content_dir: Optional[str] = None
    layout_files: List[str] = field(default_factory=list)
    config_files: List[str] = field(default_factory=list)

    def classify(self, exclude_paths: Sequence[str]) -> Tuple[List[str], List[str]]:
        """Split role directories into ``(safe_zones, danger_zones)`` for the given exclusions."""
        danger_zones = list(exclude_paths)
        safe_zones = sorted(
            {
                directory
                for directory in (self.pages_dir, self.components_dir, self.public_dir, self.content_dir)
                if directory is not None
                and not any(path_in_zone(directory, pattern) for pattern in danger_zones)
            }
        )
        return safe_zones, danger_zones


@dataclass
class SeoArtifacts:
    """SEO artifacts already present in the repository."""

    sitemap: Optional[str] = None
    robots: Optional[str] = None
    schema_files: List[str] = field(default_factory=list)
    schema_types: List[str] = field(default_factory=list)


@dataclass
class CodebaseProfile:
    """Structural description of a repository at one commit."""

    repo_id: str
    commit: str
    framework: Framework
    framework_version: Optional[str] = None
    roles: DirectoryRoles = field(default_factory=DirectoryRoles)
    artifacts: SeoArtifacts = field(default_factory=SeoArtifacts)
    pages: List[PageInfo] = field(default_factory=list)
    safe_zones: List[str] = field(default_factory=list)
    danger_zones: List[str] = field(default_factory=list)
    scanned_at: str = ""

    def apply_exclusions(self, exclude_paths: Sequence[str]) -> bool:
        """Re-derive zones from the current exclusions; True when they changed."""
        safe_zones, danger_zones = self.roles.classify(exclude_paths)
        if safe_zones == self.safe_zones and danger_zones == self.danger_zones:
            return False
        self.safe_zones = safe_zones
        self.danger_zones = danger_zones
        return True

    def is_safe(self, path: str) -> bool:
        return not any(path_in_zone(path, pattern) for pattern in self.danger_zones)

    def page_by_url(self, url: str) -> Optional[PageInfo]:
        for page in self.pages:
            if page.url == url:
                return page
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["framework"] = self.framework.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CodebaseProfile":
        pages = []
        for raw in data.get("pages") or []:
            images = [ImageRef(**image) for image in raw.get("images") or []]
            page_fields = {key: value for key, value in raw.items() if key != "images"}
            pages.append(PageInfo(images=images, **page_fields))
        return cls(
            repo_id=str(data["repo_id"]),
            commit=str(data["commit"]),
            framework=Framework(data.get("framework", Framework.UNKNOWN.value)),
            framework_version=data.get("framework_version"),
            roles=DirectoryRoles(**(data.get("roles") or {})),
            artifacts=SeoArtifacts(**(data.get("artifacts") or {})),
            pages=pages,
            safe_zones=list(data.get("safe_zones") or []),
            danger_zones=list(data.get("danger_zones") or []),
            scanned_at=str(data.get("scanned_at") or ""),
        )


@dataclass
class Issue:
    """A detected SEO defect with an identity stable across runs."""

    id: str
    type: str
    severity: Severity
    page: str
    file: Optional[str]
    description: str
    recommendation: str = ""
    auto_fixable: bool = False
    pages: List[str] = field(default_factory=list)

    @staticmethod
    def make_id(issue_type: str, page: str) -> str:
        return f"{issue_type}:{page}"


@dataclass
class Fix:
    """One single-file patch."""

    action: FixAction
    path: str
    description: str
    content: Union[str, bytes, None] = None
    search: Optional[str] = None
    replace: Optional[str] = None
    issue_ids: List[str] = field(default_factory=list)
    change_type: str = "content-update"
    affected_page: Optional[str] = None


@dataclass
class PageMeta:
    """Title and description values for one page; ``None`` means unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None


@dataclass
class MeasuredImpact:
    clicks_before: int
    clicks_after: int
    percent_change: float
    window_days: int
    measured_at: str


@dataclass
class ChangeRecord:
    """Ledger entry for one committed file change."""

    id: str
    repo_id: str
    timestamp: str
    type: str
    file: str
    commit: str
    description: str
    expected_impact: str = ""
    affected_page: Optional[str] = None
    measured_impact: Optional[MeasuredImpact] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChangeRecord":
        payload = dict(data)
        impact = payload.pop("measured_impact", None)
        record = cls(**payload)
        if isinstance(impact, Mapping):
            record.measured_impact = MeasuredImpact(**impact)
        return record


@dataclass
class DateRange:
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass
class AnalyticsRow:
    key: str
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    position: float = 0.0


def severity_sorted(issues: Sequence[Issue]) -> List[Issue]:
    """Order issues critical-first while keeping detection order within a tier."""
    return sorted(issues, key=lambda issue: issue.severity.rank)
