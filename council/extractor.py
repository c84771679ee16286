"""Fetch reviewable material for a submission before the judges are called.

GitHub repositories are the only source extracted today: repository metadata,
the README and a few small root-level source files, read through the public
REST API. Everything returned here is untrusted text and is only ever placed
inside the <user_submission> block of the evaluation prompt.
"""

import asyncio
import logging
import os
import re
from urllib.parse import urlsplit

import httpx

from config.config_loader import ExtractionConfig

logger = logging.getLogger(__name__)

_GITHUB_API = "https://api.github.com"
_GITHUB_HOSTS = ("github.com", "www.github.com")
_REPO_PATH = re.compile(r"^/([\w.-]+)/([\w.-]+?)(?:\.git)?(?:/|$)")
_SOURCE_SUFFIXES = (
    ".py", ".js", ".ts", ".jsx", ".tsx", ".sol", ".rs", ".go",
    ".java", ".cpp", ".c", ".h", ".css", ".html", ".md",
)
_MAX_FILE_BYTES = 64 * 1024
_README_CHARS = 4000
_FILE_CHARS = 1500
_UNSAFE_CHARS = re.compile(r"[<>\x00]")
_TRUNCATED = "\n[... truncated ...]"


def parse_github_repo(url: str) -> tuple[str, str] | None:
    """Return (owner, repo) for a github.com URL, else None."""
    parts = urlsplit(url)
    if (parts.hostname or "").lower() not in _GITHUB_HOSTS:
        return None
    match = _REPO_PATH.match(parts.path)
    if not match:
        return None
    return match.group(1), match.group(2)


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + _TRUNCATED


def _clean(text: str, max_chars: int) -> str:
    """Drop characters that could close the prompt delimiters and cap length."""
    return _clip(_UNSAFE_CHARS.sub("", text), max_chars).strip()


def _format_metadata(owner: str, repo: str, meta: dict) -> str:
    license_info = meta.get("license") or {}
    lines = [
        f"Repository: {owner}/{repo}",
        f"Description: {meta.get('description') or 'none'}",
        f"Primary language: {meta.get('language') or 'unknown'}",
        f"Stars: {meta.get('stargazers_count', 0)} | Forks: {meta.get('forks_count', 0)}"
        f" | Open issues: {meta.get('open_issues_count', 0)}",
        f"License: {license_info.get('name') or 'none'}",
        f"Created: {meta.get('created_at', '?')} | Last push: {meta.get('pushed_at', '?')}",
    ]
    return "\n".join(lines)


class ContentExtractor:
    """Fetch GitHub repository material with an httpx.AsyncClient.

    `extract` never raises: network errors, unexpected payloads and the time
    budget all end in an empty string and a logged warning, and the round
    carries on with the notes alone.
    """

    def __init__(self, config: ExtractionConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/vnd.github+json", "User-Agent": "blob-council"}
        token = os.environ.get(self._config.github_token_env, "").strip() if self._config.github_token_env else ""
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return httpx.AsyncClient(
            base_url=_GITHUB_API,
            headers=headers,
            timeout=self._config.timeout_sec,
            transport=self._transport,
        )

    async def extract(self, url: str, budget_sec: float | None = None) -> str:
        """Return extracted text for `url`, or "" when there is nothing to add."""
        if not self._config.enabled:
            return ""
        repo = parse_github_repo(url)
        if repo is None:
            return ""

        timeout = self._config.timeout_sec if budget_sec is None else min(self._config.timeout_sec, budget_sec)
        if timeout <= 0:
            logger.warning("No time left to extract content from %s", url)
            return ""

        try:
            async with self._client() as client:
                text = await asyncio.wait_for(self._extract_github(client, *repo), timeout)
        except TimeoutError:
            logger.warning("Content extraction for %s exceeded %.1fs; continuing without it", url, timeout)
            return ""
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Content extraction for %s failed: %s", url, exc)
            return ""

        cleaned = _clean(text, self._config.max_chars)
        logger.info("Extracted %d chars of repository content for %s", len(cleaned), url)
        return cleaned

    async def _extract_github(self, client: httpx.AsyncClient, owner: str, repo: str) -> str:
        resp = await client.get(f"/repos/{owner}/{repo}")
        resp.raise_for_status()
        meta = resp.json()
        if not isinstance(meta, dict):
            raise ValueError("Unexpected repository payload")

        sections = [_format_metadata(owner, repo, meta)]
        readme = await self._fetch_raw(client, f"/repos/{owner}/{repo}/readme")
        if readme:
            sections.append(f"README:\n{_clip(readme, _README_CHARS)}")
        for path in await self._sample_paths(client, owner, repo):
            content = await self._fetch_raw(client, f"/repos/{owner}/{repo}/contents/{path}")
            if content:
                sections.append(f"FILE {path}:\n{_clip(content, _FILE_CHARS)}")
        return "\n\n".join(sections)

    async def _fetch_raw(self, client: httpx.AsyncClient, path: str) -> str:
        """GET a file body as raw text. Missing or failing files are skipped."""
        try:
            resp = await client.get(path, headers={"Accept": "application/vnd.github.raw"})
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("Skipping %s: %s", path, exc)
            return ""
        return resp.text

    async def _sample_paths(self, client: httpx.AsyncClient, owner: str, repo: str) -> list[str]:
        """Pick up to `max_files` small source files from the repository root."""
        if self._config.max_files <= 0:
            return []
        try:
            resp = await client.get(f"/repos/{owner}/{repo}/contents")
            resp.raise_for_status()
            listing = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Skipping repository listing: %s", exc)
            return []
        if not isinstance(listing, list):
            return []

        paths = [
            item["path"]
            for item in listing
            if isinstance(item, dict)
            and item.get("type") == "file"
            and str(item.get("name", "")).lower().endswith(_SOURCE_SUFFIXES)
            and str(item.get("name", "")).lower() != "readme.md"
            and 0 < int(item.get("size") or 0) <= _MAX_FILE_BYTES
            and "path" in item
        ]
        return paths[: self._config.max_files]
