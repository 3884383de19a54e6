"""
Shared fixtures: a sample endpoint, WordPress rows, and in-memory fakes for
the WordPress fetcher and the GitHub tree service.
"""

import base64
import copy
from typing import Any, Dict, List

import pytest

from ..config import Endpoint, GitHubTarget
from ..github_tree import CommitReport, FileChange, TreeEntry, diff_file_map, git_blob_sha
from ..records import Dictionaries

WP_URL = "https://wp.example.com"
UPLOADS = f"{WP_URL}/wp-content/uploads"


class FakeFetcher:
    """Serves canned collections and binaries, counting downloads."""

    def __init__(self, collections: Dict[str, List[Dict[str, Any]]], binaries: Dict[str, bytes],
                 dictionaries: Dict[str, Dict[int, str]]):
        self.collections = collections
        self.binaries = binaries
        self.dictionaries = dictionaries
        self.downloaded: List[str] = []

    async def fetch_paged(self, collection):
        return copy.deepcopy(self.collections.get(collection, []))

    async def fetch_dictionary(self, list_name):
        return dict(self.dictionaries.get(list_name, {}))

    async def fetch_binary(self, url):
        self.downloaded.append(url)
        return self.binaries[url]


class FakeTreeService:
    """A branch held in memory; proposals land on it as merged pull requests."""

    def __init__(self):
        self.files: Dict[str, str] = {}  # path -> sha
        self.blobs = set()
        self.uploaded: List[str] = []
        self.proposals: List[Dict[str, Any]] = []

    async def compute_diff(self, file_map, path_prefix):
        return diff_file_map(file_map, self.files, path_prefix)

    async def object_exists(self, sha):
        return sha in self.blobs

    async def create_object(self, data):
        sha = git_blob_sha(data)
        self.blobs.add(sha)
        self.uploaded.append(sha)
        return sha

    async def propose_change(self, entries: List[TreeEntry], title, committer, allow_empty_guard=True):
        self.proposals.append({'title': title, 'entries': entries})
        for entry in entries:
            if entry.content is not None:
                sha = git_blob_sha(entry.content.encode('utf-8'))
                self.blobs.add(sha)
                self.files[entry.path] = sha
            elif entry.sha:
                self.files[entry.path] = entry.sha
            else:
                self.files.pop(entry.path, None)
        return CommitReport(
            message=title,
            html_url=f"https://github.com/org/content/commit/{len(self.proposals)}",
            sha=str(len(self.proposals)),
            files=[FileChange(filename=e.path, status=e.status) for e in entries],
        )


class FakeGitHubRepository:
    """
    Answers `GitHubTreeService._request` calls for one repository.

    Pull requests are recorded when opened; the target branch only moves
    when one is merged, so `mergeable = False` leaves it untouched.
    """

    def __init__(self, branch: str = "main"):
        self.branch = branch
        self.blobs = set()
        self.trees: Dict[str, Dict[str, str]] = {}  # tree sha -> {path: blob sha}
        self.commits: Dict[str, str] = {}  # commit sha -> tree sha
        self.refs: Dict[str, str] = {}  # branch name -> commit sha
        self.pulls: List[Dict[str, Any]] = []
        self.mergeable = True
        self.refs[branch] = self._commit(self._tree({}), "initial")

    def _tree(self, files: Dict[str, str]) -> str:
        sha = git_blob_sha(repr(sorted(files.items())).encode("utf-8"))
        self.trees[sha] = dict(files)
        return sha

    def _commit(self, tree_sha: str, message: str) -> str:
        sha = git_blob_sha(f"{tree_sha} {message} {len(self.commits)}".encode("utf-8"))
        self.commits[sha] = tree_sha
        return sha

    @property
    def files(self) -> Dict[str, str]:
        return self.trees[self.commits[self.refs[self.branch]]]

    async def request(self, method, path, payload=None):
        if method == "GET" and path.startswith("/git/trees/"):
            return 200, {"tree": [{"path": p, "type": "blob", "sha": s} for p, s in self.files.items()]}
        if method == "GET" and path.startswith("/git/ref/heads/"):
            return 200, {"object": {"sha": self.refs[path[len("/git/ref/heads/"):]]}}
        if method == "GET" and path.startswith("/git/commits/"):
            return 200, {"tree": {"sha": self.commits[path[len("/git/commits/"):]]}}
        if method == "HEAD" and path.startswith("/git/blobs/"):
            return (200 if path[len("/git/blobs/"):] in self.blobs else 404), None
        if method == "POST" and path == "/git/blobs":
            data = base64.b64decode(payload["content"])
            sha = git_blob_sha(data)
            self.blobs.add(sha)
            return 201, {"sha": sha}
        if method == "POST" and path == "/git/trees":
            files = dict(self.trees[payload["base_tree"]])
            for node in payload["tree"]:
                if "content" in node:
                    sha = git_blob_sha(node["content"].encode("utf-8"))
                    self.blobs.add(sha)
                    files[node["path"]] = sha
                elif node["sha"] is None:
                    files.pop(node["path"], None)
                else:
                    files[node["path"]] = node["sha"]
            return 201, {"sha": self._tree(files)}
        if method == "POST" and path == "/git/commits":
            sha = self._commit(payload["tree"], payload["message"])
            return 201, {"sha": sha, "message": payload["message"], "html_url": f"https://github.com/org/content/commit/{sha}"}
        if method == "POST" and path == "/git/refs":
            self.refs[payload["ref"][len("refs/heads/"):]] = payload["sha"]
            return 201, {"ref": payload["ref"]}
        if method == "POST" and path == "/pulls":
            number = len(self.pulls) + 1
            self.pulls.append({"number": number, "title": payload["title"], "head": payload["head"], "merged": False})
            return 201, {"number": number, "html_url": f"https://github.com/org/content/pull/{number}"}
        if method == "PUT" and path.endswith("/merge"):
            pull = self.pulls[int(path.split("/")[2]) - 1]
            if not self.mergeable:
                return 405, {"message": "Pull Request is not mergeable"}
            self.refs[self.branch] = self.refs[pull["head"]]
            pull["merged"] = True
            return 200, {"sha": self.refs[self.branch], "merged": True}
        if method == "DELETE" and path.startswith("/git/refs/heads/"):
            self.refs.pop(path[len("/git/refs/heads/"):], None)
            return 204, None
        return 404, {"message": f"Not Found: {method} {path}"}


@pytest.fixture
def endpoint():
    return Endpoint(
        name="test-site",
        wordpress_url=WP_URL,
        exclude_properties=["guid"],
        reporting_channel_slack="C-REPORTS",
        github_target=GitHubTarget(
            owner="org",
            repo="content",
            branch="main",
            sync_media=True,
            media_path="wordpress/media",
            post_path="wordpress/posts",
            page_path="wordpress/pages",
        ),
    )


@pytest.fixture
def dictionaries():
    return Dictionaries(
        categories={3: "News"},
        tags={5: "Featured", 6: "Health"},
        users={1: "Ada"},
    )


@pytest.fixture
def image_row():
    return {
        "id": 7,
        "slug": "hero",
        "date_gmt": "2020-07-01T10:00:00",
        "modified_gmt": "2020-07-02T10:00:00",
        "author": 1,
        "guid": "https://wp.example.com/?attachment_id=7",
        "title": "Hero",
        "source_url": f"{UPLOADS}/2020/07/hero.jpg",
        "media_details": {
            "sizes": {
                "thumbnail": {"width": 150, "height": 150, "source_url": f"{UPLOADS}/2020/07/hero-150x150.jpg"},
                "full": {"width": 1200, "height": 800, "source_url": f"{UPLOADS}/2020/07/hero.jpg"},
                "medium": {"width": 300, "height": 200, "source_url": f"{UPLOADS}/2020/07/hero-300x200.jpg"},
            }
        },
    }


@pytest.fixture
def document_row():
    return {
        "id": 9,
        "slug": "annual-report",
        "date_gmt": "2020-08-01T10:00:00",
        "modified_gmt": "2020-08-01T10:00:00",
        "author": 1,
        "title": "Annual report",
        "source_url": f"{UPLOADS}/2020/08/annual-report.pdf",
        "media_details": {},
    }


@pytest.fixture
def post_row():
    return {
        "id": 1,
        "slug": "hello-world",
        "date_gmt": "2021-01-01T09:00:00",
        "modified_gmt": "2021-01-02T09:00:00",
        "author": 1,
        "guid": "https://wp.example.com/?p=1",
        "link": f"{WP_URL}/hello-world/",
        "title": "Hello world",
        "content": f'\n<p>Hi</p>\n\n\n<img src="{UPLOADS}/2020/07/hero-150x150.jpg">\n',
        "featured_media": 0,
        "categories": [3],
        "tags": [5, 6],
    }


@pytest.fixture
def page_row():
    return {
        "id": 2,
        "slug": "about",
        "date_gmt": "2021-02-01T09:00:00",
        "modified_gmt": "2021-02-01T09:00:00",
        "author": 1,
        "link": f"{WP_URL}/about/",
        "title": "About",
        "content": "<p>About us</p>",
        "featured_media": 9,
    }


@pytest.fixture
def fake_fetcher(image_row, document_row, post_row, page_row):
    binaries = {
        f"{UPLOADS}/2020/07/hero.jpg": b"full-bytes",
        f"{UPLOADS}/2020/07/hero-150x150.jpg": b"thumb-bytes",
        f"{UPLOADS}/2020/07/hero-300x200.jpg": b"medium-bytes",
        f"{UPLOADS}/2020/08/annual-report.pdf": b"%PDF-1.4",
    }
    return FakeFetcher(
        collections={
            "media": [image_row, document_row],
            "posts": [post_row],
            "pages": [page_row],
        },
        binaries=binaries,
        dictionaries={
            "categories": {3: "News"},
            "tags": {5: "Featured", 6: "Health"},
            "users": {1: "Ada"},
        },
    )


@pytest.fixture
def fake_tree():
    return FakeTreeService()
