"""GitHub REST metadata provider."""

from __future__ import annotations

import http.client
import json
import os
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.error import HTTPError
from urllib.parse import quote, urlparse
from urllib.request import Request, urlopen

from ..logging import get_logger
from ..models import RepositorySnapshot

logger = get_logger("metadata.github")

CODE_EXTENSIONS = frozenset(
    {
        ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs",
        ".py", ".pyw",
        ".java", ".kt", ".kts",
        ".go", ".rs", ".rb", ".php",
        ".c", ".h", ".cpp", ".hpp", ".cc",
        ".cs", ".swift", ".dart",
        ".vue", ".svelte", ".astro",
        ".html", ".css", ".scss", ".sass", ".less",
        ".sql", ".sh", ".bash", ".zsh",
        ".lua", ".r", ".jl", ".ex", ".exs", ".erl",
        ".json", ".yaml", ".yml", ".toml",
        ".graphql", ".gql", ".proto",
    }
)

IMPORTANT_FILES = frozenset(
    {
        "Dockerfile", "docker-compose.yml", "docker-compose.yaml",
        "Makefile", "CMakeLists.txt", "Cargo.toml", "go.mod",
        "package.json", "tsconfig.json", "vite.config.js", "vite.config.ts",
        "next.config.js", "next.config.mjs", "tailwind.config.js",
        ".eslintrc.js", ".eslintrc.json", "eslint.config.js",
        ".prettierrc", ".gitignore", ".env.example", "requirements.txt", "setup.py",
        "pyproject.toml", "Gemfile", "build.gradle", "pom.xml",
    }
)

IGNORED_DIRS = frozenset(
    {
        "node_modules", ".git", "dist", "build", "out", ".next", ".nuxt",
        "vendor", "__pycache__", ".cache", "coverage", ".vscode", ".idea",
    }
)
# Only these are pruned below the repository root; the rest only at top level.
NESTED_IGNORED_DIRS = frozenset({"node_modules", "dist", ".git"})

IGNORED_FILES = frozenset(
    {
        "package-lock.json", "yarn.lock", "pnpm-lock.yaml",
        "composer.lock", "Gemfile.lock", "Cargo.lock",
        ".DS_Store", "Thumbs.db",
    }
)

_BINARY_SUFFIX = re.compile(
    r"\.(png|jpe?g|gif|svg|ico|webp|bmp|mp3|mp4|wav|avi|mov|zip|tar|gz|rar|7z|pdf|ttf|woff2?|eot|otf)$",
    re.IGNORECASE,
)


class MetadataError(RuntimeError):
    """Base class for repository metadata failures."""

    status = 500


class InvalidReferenceError(MetadataError):
    """The repository reference could not be parsed."""

    status = 400


class RepositoryNotFoundError(MetadataError):
    """The repository does not exist or is private."""

    status = 404


class RateLimitedError(MetadataError):
    """The GitHub API rejected the request because of rate limiting."""

    status = 403


class GitHubMetadataProvider:
    """Fetches a :class:`RepositorySnapshot` for a public GitHub repository."""

    DEFAULT_BASE_URL = "https://api.github.com"
    USER_AGENT = "repolens"

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        request_timeout: Optional[float] = 20.0,
        readme_limit: int = 12000,
        tree_limit: int = 120,
    ) -> None:
        if token is None:
            token = os.getenv("GITHUB_TOKEN")
        self.token = (token or "").strip() or None
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.request_timeout = request_timeout
        self.readme_limit = readme_limit
        self.tree_limit = tree_limit

    @staticmethod
    def parse_repo_url(repo_url: str) -> Tuple[str, str]:
        """Return ``(owner, repo)`` from a repository URL."""
        parsed = urlparse((repo_url or "").strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidReferenceError(f"Invalid repository URL: {repo_url!r}")
        parts = [part for part in parsed.path.strip("/").split("/") if part]
        if len(parts) < 2:
            raise InvalidReferenceError(f"Invalid repository URL: {repo_url!r}")
        owner, repo = parts[0], parts[1]
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        if not repo:
            raise InvalidReferenceError(f"Invalid repository URL: {repo_url!r}")
        return owner, repo

    def fetch(self, repo_url: str) -> RepositorySnapshot:
        owner, repo = self.parse_repo_url(repo_url)
        info = self._get_json(self._repo_path(owner, repo))
        languages = self._get_json(self._repo_path(owner, repo, "languages"))
        readme = self._fetch_readme(owner, repo)
        tree = self._fetch_tree(owner, repo)

        license_info = info.get("license")
        license_name = None
        if isinstance(license_info, dict):
            license_name = license_info.get("name") or license_info.get("spdx_id")
        topics = info.get("topics") if isinstance(info.get("topics"), list) else []

        snapshot = RepositorySnapshot(
            name=str(info.get("name") or repo),
            description=info.get("description") or None,
            stars=_as_count(info.get("stargazers_count")),
            forks=_as_count(info.get("forks_count")),
            open_issues=_as_count(info.get("open_issues_count")),
            languages={str(name): _as_count(size) for name, size in languages.items()},
            topics=tuple(str(topic) for topic in topics if topic),
            license_name=license_name,
            readme_excerpt=readme,
            tree_excerpt=tree,
        )
        logger.debug(
            "Fetched %s/%s: %d language(s), readme=%d chars, tree=%d entries",
            owner,
            repo,
            len(snapshot.languages),
            len(readme),
            len(tree.splitlines()),
        )
        return snapshot

    def _fetch_readme(self, owner: str, repo: str) -> str:
        try:
            raw = self._get(
                self._repo_path(owner, repo, "readme"),
                accept="application/vnd.github.v3.raw",
            )
        except MetadataError as exc:
            logger.debug("README unavailable for %s/%s: %s", owner, repo, exc)
            return ""
        return raw.decode("utf-8", errors="replace")[: self.readme_limit]

    def _fetch_tree(self, owner: str, repo: str) -> str:
        try:
            payload = self._get_json(self._repo_path(owner, repo, "git/trees/HEAD?recursive=1"))
        except MetadataError as exc:
            logger.debug("File tree unavailable for %s/%s: %s", owner, repo, exc)
            return ""
        entries = payload.get("tree")
        if not isinstance(entries, list):
            return ""
        return format_tree(filter_tree(entries), limit=self.tree_limit)

    def _repo_path(self, owner: str, repo: str, suffix: str = "") -> str:
        path = f"{self.base_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
        return f"{path}/{suffix}" if suffix else path

    def _get_json(self, url: str) -> Dict[str, Any]:
        raw = self._get(url)
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MetadataError(f"GitHub returned invalid JSON for {url}") from exc
        if not isinstance(payload, dict):
            raise MetadataError(f"GitHub returned an unexpected document for {url}")
        return payload

    def _get(self, url: str, *, accept: str = "application/vnd.github+json") -> bytes:
        headers = {"Accept": accept, "User-Agent": self.USER_AGENT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        request = Request(url, headers=headers, method="GET")
        try:
            with urlopen(request, timeout=self.request_timeout or 20.0) as response:  # type: ignore[arg-type]
                return response.read()
        except HTTPError as exc:
            raise self._classify(exc) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise MetadataError(f"GitHub API unreachable: {exc}") from exc

    @staticmethod
    def _classify(exc: HTTPError) -> MetadataError:
        if exc.code == 404:
            return RepositoryNotFoundError("Repository not found or private")
        remaining = exc.headers.get("X-RateLimit-Remaining") if exc.headers else None
        if exc.code == 429 or (exc.code == 403 and remaining == "0"):
            return RateLimitedError("GitHub API rate limit exceeded")
        error = MetadataError(f"GitHub request failed with status {exc.code}")
        error.status = exc.code
        return error


def filter_tree(entries: List[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Keep directories plus code and notable config files; drop vendored or binary paths."""
    kept: List[Mapping[str, Any]] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        path = str(entry.get("path") or "")
        if not path or _is_ignored_path(path):
            continue
        filename = path.rsplit("/", 1)[-1]
        if filename in IGNORED_FILES or _BINARY_SUFFIX.search(filename):
            continue
        if entry.get("type") == "tree":
            kept.append(entry)
            continue
        extension = f".{filename.rsplit('.', 1)[-1].lower()}" if "." in filename else ""
        if extension in CODE_EXTENSIONS or filename in IMPORTANT_FILES:
            kept.append(entry)
    return kept


def format_tree(entries: List[Mapping[str, Any]], *, limit: int = 120) -> str:
    lines = []
    for entry in entries[:limit]:
        marker = "📁" if entry.get("type") == "tree" else "📄"
        lines.append(f"{marker} {entry.get('path')}")
    return "\n".join(lines)


def _is_ignored_path(path: str) -> bool:
    parts = path.split("/")
    directories = parts[:-1]
    if directories and directories[0] in IGNORED_DIRS:
        return True
    return any(part in NESTED_IGNORED_DIRS for part in directories[1:])


def _as_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    return 0


__all__ = [
    "GitHubMetadataProvider",
    "InvalidReferenceError",
    "MetadataError",
    "RateLimitedError",
    "RepositoryNotFoundError",
    "filter_tree",
    "format_tree",
]
