"""
GitHub destination tree service.

Computes the minimal set of tree entries that differ between a file map and
the current state of a branch, checks blob existence by SHA, uploads blobs,
and opens and merges a pull request for a set of entries.

Diffing is split into the pure `diff_file_map` so it can be exercised without
network access; `GitHubTreeService` only adds the REST calls around it.
"""

import base64
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config import GITHUB_API_URL, GitHubCommitter
from .config import GitHubTarget
from .error_tracker import ExternalServiceError
from .logging_manager import get_logger
from .media import MEDIA_PLACEHOLDER

logger = get_logger(__name__)

BLOB_MODE = '100644'


@dataclass
class TreeEntry:
    """A path that would be written (content or sha) or removed (neither)."""
    path: str
    status: str  # added, modified, removed
    content: Optional[str] = None
    sha: Optional[str] = None
    base_sha: Optional[str] = None  # blob already at this path on the branch

    @property
    def is_placeholder(self) -> bool:
        return self.content == MEDIA_PLACEHOLDER

    def to_github(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {'path': self.path, 'mode': BLOB_MODE, 'type': 'blob'}
        if self.content is not None:
            node['content'] = self.content
        else:
            node['sha'] = self.sha  # None deletes the path
        return node


@dataclass
class FileChange:
    filename: str
    status: str


@dataclass
class CommitReport:
    """What a pull request changed; consumed by the notifier."""
    message: str
    html_url: str
    sha: str
    pull_request_url: Optional[str] = None
    files: List[FileChange] = field(default_factory=list)


def git_blob_sha(data: bytes) -> str:
    """Predict the SHA git assigns to a blob with this content."""
    header = f"blob {len(data)}\0".encode('utf-8')
    return hashlib.sha1(header + data).hexdigest()


def serialize_content(value: Any) -> str:
    """File map value -> file text. Dicts are written as indented JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def join_path(prefix: str, path: str) -> str:
    prefix = prefix.strip('/')
    return f"{prefix}/{path}" if prefix else path


def diff_file_map(file_map: Dict[str, Any], existing: Dict[str, str], path_prefix: str) -> List[TreeEntry]:
    """
    Compare a file map with the blobs already on the branch.

    Args:
        file_map: Paths relative to `path_prefix` -> pending content
        existing: Full repository path -> blob sha, for the whole branch
        path_prefix: Storage path of this content type

    Returns:
        Entries sorted by path: changed or new files, placeholders, and
        removals for files under the prefix that are not in the map
    """
    entries: List[TreeEntry] = []
    wanted = set()
    for rel_path, value in file_map.items():
        full_path = join_path(path_prefix, rel_path)
        wanted.add(full_path)
        status = 'modified' if full_path in existing else 'added'
        if value == MEDIA_PLACEHOLDER:
            entries.append(TreeEntry(path=full_path, status=status, content=MEDIA_PLACEHOLDER, base_sha=existing.get(full_path)))
            continue
        content = serialize_content(value)
        if existing.get(full_path) == git_blob_sha(content.encode('utf-8')):
            continue
        entries.append(TreeEntry(path=full_path, status=status, content=content))

    prefix = path_prefix.strip('/') + '/'
    for full_path in existing:
        if full_path.startswith(prefix) and full_path not in wanted:
            entries.append(TreeEntry(path=full_path, status='removed'))

    entries.sort(key=lambda e: e.path)
    return entries


class GitHubTreeService:
    """Reads and writes one repository branch through the GitHub REST API."""

    def __init__(self, session: aiohttp.ClientSession, target: GitHubTarget, token: str, api_url: str = GITHUB_API_URL):
        self.session = session
        self.target = target
        self.api_url = api_url
        self.headers = {
            'Authorization': f'token {token}',
            'Accept': 'application/vnd.github+json',
        }

    @property
    def repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.target.full_name}"

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Tuple[int, Any]:
        """Single REST call; returns (status, decoded JSON or None)."""
        async with self.session.request(method, f"{self.repo_url}{path}", json=payload, headers=self.headers) as response:
            body = None
            if method != 'HEAD' and response.status != 204:
                body = await response.json(content_type=None)
            return response.status, body

    async def _call(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        status, body = await self._request(method, path, payload)
        if status >= 400:
            message = body.get('message') if isinstance(body, dict) else body
            raise ExternalServiceError(
                f"GitHub {method} {path} failed with {status}: {message}",
                source_id=self.target.full_name,
                status=status,
                recovery_suggestion="Check GITHUB_TOKEN permissions for the target repository."
            )
        return body

    async def get_existing_blobs(self) -> Dict[str, str]:
        """Full path -> sha for every blob on the target branch."""
        body = await self._call('GET', f"/git/trees/{self.target.branch}?recursive=1")
        if body.get('truncated'):
            raise ExternalServiceError(
                f"Tree listing for {self.target.full_name}@{self.target.branch} is truncated",
                source_id=self.target.full_name,
                recovery_suggestion="Split the mirrored content across repositories so one recursive listing covers the branch."
            )
        return {node['path']: node['sha'] for node in body.get('tree', []) if node.get('type') == 'blob'}

    async def compute_diff(self, file_map: Dict[str, Any], path_prefix: str) -> List[TreeEntry]:
        existing = await self.get_existing_blobs()
        entries = diff_file_map(file_map, existing, path_prefix)
        logger.info(f"Compared {len(file_map)} files under {path_prefix}: {len(entries)} differ")
        return entries

    async def object_exists(self, sha: str) -> bool:
        """A 404 is a normal negative result, anything else non-2xx is an error."""
        status, _ = await self._request('HEAD', f"/git/blobs/{sha}")
        if status == 404:
            return False
        if status >= 400:
            raise ExternalServiceError(f"GitHub blob check for {sha} failed with {status}", source_id=self.target.full_name, status=status)
        return True

    async def create_object(self, data: bytes) -> str:
        body = await self._call('POST', '/git/blobs', {
            'content': base64.b64encode(data).decode('ascii'),
            'encoding': 'base64',
        })
        return body['sha']

    async def propose_change(self, entries: List[TreeEntry], title: str, committer: GitHubCommitter, allow_empty_guard: bool = True) -> Optional[CommitReport]:
        """
        Commit the entries on a new branch, then open a pull request into the
        target branch and merge it. The pull request stays as the record of
        the change; the next run diffs against the merged branch.

        Returns:
            A CommitReport, or None when there was nothing to change
        """
        if not entries:
            return None

        branch = self.target.branch
        head = await self._call('GET', f"/git/ref/heads/{branch}")
        head_sha = head['object']['sha']
        head_commit = await self._call('GET', f"/git/commits/{head_sha}")
        base_tree_sha = head_commit['tree']['sha']

        tree = await self._call('POST', '/git/trees', {
            'base_tree': base_tree_sha,
            'tree': [entry.to_github() for entry in entries],
        })
        if allow_empty_guard and tree['sha'] == base_tree_sha:
            logger.info(f"No net change for '{title}'; skipping pull request")
            return None

        commit_payload: Dict[str, Any] = {'message': title, 'tree': tree['sha'], 'parents': [head_sha]}
        if committer.name and committer.email:
            identity = committer.model_dump()
            commit_payload['author'] = identity
            commit_payload['committer'] = identity
        commit = await self._call('POST', '/git/commits', commit_payload)

        stamp = datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')
        proposal_branch = f"{branch}-wpmirror-{stamp}-{commit['sha'][:7]}"
        await self._call('POST', '/git/refs', {'ref': f"refs/heads/{proposal_branch}", 'sha': commit['sha']})
        pull = await self._call('POST', '/pulls', {'title': title, 'head': proposal_branch, 'base': branch})

        merge = await self._call('PUT', f"/pulls/{pull['number']}/merge", {'commit_title': title, 'merge_method': 'merge'})
        await self._call('DELETE', f"/git/refs/heads/{proposal_branch}")

        logger.info(f"Merged pull request {pull.get('html_url')} ({len(entries)} files) as {merge.get('sha')}")
        return CommitReport(
            message=commit.get('message', title),
            html_url=commit.get('html_url', ''),
            sha=commit['sha'],
            pull_request_url=pull.get('html_url'),
            files=[FileChange(filename=e.path, status=e.status) for e in entries],
        )
