"""Data models for edgemap."""

from typing import Literal, TypeAlias
from urllib.parse import quote, urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, model_validator

Locale: TypeAlias = str

ChangeFrequency = Literal["always", "hourly", "daily", "weekly", "monthly", "yearly", "never"]

# =============================================================================
# Filters
# =============================================================================


class FilterRules(BaseModel):
    """Predicate categories of a filter rule-set.

    A candidate satisfies the rule-set when any named category matches it.
    An empty list counts as an absent category.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    ids: list[str] = Field(default_factory=list)
    urls: list[str] = Field(default_factory=list, description="Regular expressions searched in the path")
    categories: list[str] = Field(default_factory=list)
    providers: list[str] = Field(default_factory=list)
    locales: list[str] = Field(default_factory=list)


class Filter(BaseModel):
    """Either an include or an exclude rule-set, never both.

    Usage:
        Filter(exclude=FilterRules(urls=["games/all"], locales=["no"]))
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    include: FilterRules | None = None
    exclude: FilterRules | None = None

    @model_validator(mode="after")
    def _check_exclusive(self) -> "Filter":
        if self.include is not None and self.exclude is not None:
            raise ValueError("a filter accepts either 'include' or 'exclude', not both")
        return self

    @property
    def rules(self) -> FilterRules | None:
        """Return whichever rule-set is configured."""
        return self.include if self.include is not None else self.exclude

    @property
    def is_include(self) -> bool:
        return self.include is not None


# =============================================================================
# Endpoint, proxy, replacement and auth configuration
# =============================================================================


class ApiConfig(BaseModel):
    """A listing endpoint and the provider tag that parses its responses."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: str
    url: str


class ProxyConfig(BaseModel):
    """Upstream HTTP proxy, optionally with basic credentials."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    username: str = ""
    password: str = ""

    def as_url(self) -> str:
        """Build the proxy URL with credentials embedded when both are set.

        Returns:
            Proxy URL suitable for ``httpx.AsyncClient(proxy=...)``.
        """
        if not (self.username and self.password):
            return self.url
        parts = urlsplit(self.url)
        netloc = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}@{parts.netloc}"
        return urlunsplit(parts._replace(netloc=netloc))


class ReplaceRule(BaseModel):
    """Literal substitution applied to serialized sitemap XML."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    pattern: str = Field(min_length=1)
    value: str = ""


class AuthConfig(BaseModel):
    """Credentials for the script upload API.

    Either a bearer ``token`` or an ``email`` + ``key`` pair must be present.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    token: str | None = None
    email: str | None = None
    key: str | None = None

    @model_validator(mode="after")
    def _check_complete(self) -> "AuthConfig":
        if self.token:
            return self
        if self.email and self.key:
            return self
        raise ValueError("auth requires either 'token' or both 'email' and 'key'")

    def headers(self) -> dict[str, str]:
        """Build authentication headers, preferring the bearer token."""
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {"X-Auth-Email": self.email or "", "X-Auth-Key": self.key or ""}


# =============================================================================
# Pages and sitemaps
# =============================================================================


class Alternate(BaseModel):
    """The same path exposed under another locale (an hreflang pair)."""

    model_config = ConfigDict(frozen=True)

    path: str
    lang: Locale


class Page(BaseModel):
    """A normalised sitemap entry for one path in one locale."""

    model_config = ConfigDict(frozen=True)

    path: str
    lang: Locale
    priority: float
    changefreq: ChangeFrequency
    alternates: tuple[Alternate, ...] = ()


class Sitemap(BaseModel):
    """A named, fully serialised sitemap document.

    ``name`` determines the route the document is served under
    (``/<name>.xml``).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    xml: str
    base_url: str

    @property
    def route(self) -> str:
        return f"/{self.name}.xml"

    @property
    def location(self) -> str:
        """Absolute URL of this sitemap, as listed in the sitemap index."""
        return f"{self.base_url.rstrip('/')}/{self.name}.xml"
