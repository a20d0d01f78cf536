"""Push the local card document to a file in a GitHub repository.

Uses the contents API create-or-update call. When the remote file already
exists its blob sha is sent back with the update, so GitHub rejects the write
if someone changed the file since we looked. Nothing is retried or merged.

Usage:
    linkdash-sync                       # GITHUB_TOKEN / GITHUB_REPO from env
    python -m linkdash.sync --data-file data.json
"""

from __future__ import annotations

import argparse
import base64
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from .config import Settings
from .utils import display_timestamp, now_utc, shifted

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.github.com"
USER_AGENT = "linkdash-sync"


class SyncError(Exception):
    pass


class RemoteNotFound(SyncError):
    pass


def build_commit_payload(
    content: str,
    sha: Optional[str],
    now: datetime,
    path: str = "data.json",
    branch: str = "main",
    utc_offset_hours: int = 8,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "message": f"Update {path} - {display_timestamp(shifted(now, utc_offset_hours))}",
        "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        "branch": branch,
    }
    if sha is not None:
        payload["sha"] = sha
    return payload


class GitHubSync:
    def __init__(
        self,
        token: str,
        repo: str,
        data_file: Path | str,
        path: str = "data.json",
        branch: str = "main",
        api_base: str = API_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        utc_offset_hours: int = 8,
    ) -> None:
        owner, _, name = repo.partition("/")
        if not owner or not name or "/" in name:
            raise SyncError(f"GITHUB_REPO must look like owner/repo, got {repo!r}")
        self.token = token
        self.owner = owner
        self.name = name
        self.data_file = Path(data_file)
        self.path = path.lstrip("/")
        self.branch = branch
        self.api_base = api_base.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.utc_offset_hours = utc_offset_hours

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "GitHubSync":
        if not settings.sync_configured:
            raise SyncError("missing GitHub configuration (GITHUB_TOKEN/GITHUB_REPO)")
        return cls(
            settings.github_token,
            settings.github_repo,
            settings.data_file,
            path=settings.github_path,
            branch=settings.github_branch,
            timeout=settings.github_timeout,
            utc_offset_hours=settings.log_utc_offset_hours,
            **kwargs,
        )

    @property
    def contents_url(self) -> str:
        return f"{self.api_base}/repos/{self.owner}/{self.name}/contents/{self.path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

    def _request(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = self.session.request(
                method, self.contents_url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            raise SyncError(f"{method} {self.path} failed: {exc}") from exc
        if resp.status_code == 404:
            raise RemoteNotFound(f"{method} {self.path}: 404")
        if not 200 <= resp.status_code < 300:
            raise SyncError(f"GitHub API error [{resp.status_code}]: {resp.text}")
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise SyncError(f"GitHub API returned invalid JSON for {method} {self.path}") from exc

    def read_local(self) -> str:
        if not self.data_file.is_file():
            raise SyncError(f"{self.data_file} does not exist or is not a file")
        try:
            content = self.data_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SyncError(f"cannot read {self.data_file}: {exc}") from exc
        if not content:
            raise SyncError(f"{self.data_file} is empty")
        return content

    def remote_sha(self) -> Optional[str]:
        try:
            info = self._request("GET", params={"ref": self.branch})
        except RemoteNotFound:
            logger.info("remote %s not found, it will be created", self.path)
            return None
        sha = info.get("sha") if isinstance(info, dict) else None
        if not sha:
            raise SyncError(f"remote {self.path} has no sha")
        return sha

    def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Create or update the remote file from the local document."""
        content = self.read_local()
        sha = self.remote_sha()
        payload = build_commit_payload(
            content,
            sha,
            now or now_utc(),
            path=self.path,
            branch=self.branch,
            utc_offset_hours=self.utc_offset_hours,
        )
        try:
            result = self._request("PUT", json=payload)
        except RemoteNotFound as exc:
            # PUT 404 means the repo or branch is missing, not the file
            raise SyncError(str(exc)) from exc
        logger.info("synced %s to %s/%s@%s", self.data_file, self.owner, self.name, self.branch)
        return result


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Push the card document to GitHub.")
    parser.add_argument("--data-file", help="local document (default: DATA_FILE or data.json)")
    parser.add_argument("--branch", help="target branch (default: GITHUB_BRANCH or main)")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if args.data_file:
        settings.data_file = Path(args.data_file)
    if args.branch:
        settings.github_branch = args.branch

    try:
        GitHubSync.from_settings(settings).run()
    except SyncError as exc:
        logger.error("sync failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
