# === NAVMAP v1 ===
# {
#   "module": "PackFormats.publish",
#   "purpose": "Publish the flushed mapping as a GitHub commit and pull request",
#   "sections": [
#     {
#       "id": "render-commit-message",
#       "name": "render_commit_message",
#       "anchor": "function-render-commit-message",
#       "kind": "function"
#     },
#     {
#       "id": "publishrequest",
#       "name": "PublishRequest",
#       "anchor": "class-publishrequest",
#       "kind": "class"
#     },
#     {
#       "id": "githubpublisher",
#       "name": "GitHubPublisher",
#       "anchor": "class-githubpublisher",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""GitHub publishing for an updated mapping file.

Every step is idempotent so a re-run after a partial publish converges:

1. Reset ``branch`` to the head of ``base`` (force-update) or create it.
2. Upsert the mapping file on ``branch`` with the rendered commit message.
3. Reuse the open pull request for ``owner:branch`` → ``base`` or open one.
4. Optionally enable squash auto-merge through GraphQL.

Commit messages are Mustache templates rendered with :mod:`chevron` and see
``type``, ``scope`` (omitted when blank), and ``versions``.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import chevron
import httpx

from .errors import PublishError

__all__ = [
    "PublishRequest",
    "PublishResult",
    "GitHubPublisher",
    "render_commit_message",
]

LOGGER = logging.getLogger(__name__)

_AUTO_MERGE_MUTATION = """
mutation ($pr: ID!) {
  enablePullRequestAutoMerge(input: {pullRequestId: $pr, mergeMethod: SQUASH}) {
    clientMutationId
  }
}
"""


def render_commit_message(
    template: str,
    *,
    commit_type: str,
    scope: str,
    versions: Sequence[str],
) -> str:
    """Render the commit message template."""

    return chevron.render(
        template,
        {
            "type": commit_type,
            "scope": scope or None,
            "versions": ", ".join(versions),
        },
    ).strip()


@dataclass
class PublishRequest:
    """Everything the publisher needs from a finished run."""

    path: Path
    versions: List[str]
    branch: str
    base: str
    commit_template: str
    commit_type: str = "chore"
    commit_scope: str = ""
    auto_merge: bool = False
    repo_path: Optional[str] = None

    @property
    def path_in_repo(self) -> str:
        return self.repo_path or Path(self.path).as_posix()

    def commit_message(self) -> str:
        return render_commit_message(
            self.commit_template,
            commit_type=self.commit_type,
            scope=self.commit_scope,
            versions=self.versions,
        )


@dataclass
class PublishResult:
    pr_number: int
    pr_url: Optional[str] = None
    created: bool = False
    auto_merge: bool = False
    commit_sha: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class GitHubPublisher:
    """Thin REST/GraphQL client for the publish steps."""

    def __init__(
        self,
        token: str,
        repository: str,
        *,
        api_url: str = "https://api.github.com",
        client: Optional[httpx.Client] = None,
    ) -> None:
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise PublishError(f"repository must look like 'owner/repo', got {repository!r}")
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=30.0)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubPublisher":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def _repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}"

    def _request(self, method: str, url: str, *, allow_404: bool = False, **kwargs: Any) -> Optional[Any]:
        try:
            response = self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise PublishError(f"{method} {url} failed: {exc}") from exc
        if allow_404 and response.status_code == 404:
            return None
        if not response.is_success:
            raise PublishError(
                f"{method} {url} -> {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()

    def reset_branch(self, branch: str, base: str) -> str:
        """Point ``branch`` at the head of ``base``, creating it when absent."""

        base_ref = self._request("GET", f"{self._repo_url}/git/ref/heads/{base}")
        base_sha = base_ref["object"]["sha"]
        existing = self._request("GET", f"{self._repo_url}/git/ref/heads/{branch}", allow_404=True)
        if existing is None:
            self._request(
                "POST",
                f"{self._repo_url}/git/refs",
                json={"ref": f"refs/heads/{branch}", "sha": base_sha},
            )
            LOGGER.info("Created branch %s from %s (%s)", branch, base, base_sha[:7])
        else:
            self._request(
                "PATCH",
                f"{self._repo_url}/git/refs/heads/{branch}",
                json={"sha": base_sha, "force": True},
            )
            LOGGER.info("Reset branch %s to %s (%s)", branch, base, base_sha[:7])
        return base_sha

    def upsert_file(self, path_in_repo: str, content: bytes, *, branch: str, message: str) -> Optional[str]:
        """Create or update ``path_in_repo`` on ``branch``; returns the commit sha."""

        url = f"{self._repo_url}/contents/{path_in_repo}"
        existing = self._request("GET", url, params={"ref": branch}, allow_404=True)
        payload: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        if isinstance(existing, dict) and existing.get("sha"):
            payload["sha"] = existing["sha"]
        result = self._request("PUT", url, json=payload)
        return (result.get("commit") or {}).get("sha")

    def ensure_pull_request(self, *, branch: str, base: str, title: str, body: str) -> Dict[str, Any]:
        """Return the open PR for ``branch`` → ``base``, creating it when needed."""

        open_prs = self._request(
            "GET",
            f"{self._repo_url}/pulls",
            params={"head": f"{self.owner}:{branch}", "base": base, "state": "open"},
        )
        if open_prs:
            pr = dict(open_prs[0])
            pr["_created"] = False
            return pr
        pr = self._request(
            "POST",
            f"{self._repo_url}/pulls",
            json={"head": branch, "base": base, "title": title, "body": body},
        )
        pr["_created"] = True
        return pr

    def enable_auto_merge(self, node_id: str) -> None:
        result = self._request(
            "POST",
            f"{self.api_url}/graphql",
            json={"query": _AUTO_MERGE_MUTATION, "variables": {"pr": node_id}},
        )
        if isinstance(result, dict) and result.get("errors"):
            raise PublishError(f"enablePullRequestAutoMerge failed: {result['errors']}")

    def publish(self, request: PublishRequest) -> PublishResult:
        """Run every publish step for ``request``."""

        message = request.commit_message()
        content = Path(request.path).read_bytes()

        self.reset_branch(request.branch, request.base)
        commit_sha = self.upsert_file(
            request.path_in_repo, content, branch=request.branch, message=message
        )
        body = (
            f"Automated update of **{request.path_in_repo}**.\n\n"
            f"Versions added: {', '.join(request.versions)}."
        )
        pr = self.ensure_pull_request(
            branch=request.branch, base=request.base, title=message, body=body
        )
        result = PublishResult(
            pr_number=int(pr["number"]),
            pr_url=pr.get("html_url"),
            created=bool(pr.get("_created")),
            commit_sha=commit_sha,
        )
        if request.auto_merge:
            self.enable_auto_merge(pr["node_id"])
            result.auto_merge = True

        LOGGER.info("Pushed commit and PR #%d", result.pr_number)
        return result
