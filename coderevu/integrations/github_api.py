"""
GitHub API Integration

Provides a GitHub REST v3 client acting with a user's OAuth token: pull
request diffs, review comments, repository file contents and webhooks.
"""

import base64
import logging
from typing import Optional, Dict, Any, List
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)


# File extensions never sent to the embedding model
SKIPPED_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".txt",
    ".md",
    ".pdf",
)

REVIEW_COMMENT_HEADER = "## 🤖 AI Code Review\n\n"
REVIEW_COMMENT_FOOTER = "\n\n---\n*Powered by CodeRevU*"


# ============================================================================
# Custom Exceptions
# ============================================================================


class GitHubAPIError(Exception):
    """Raised when GitHub API request fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.message)


class GitHubNotFoundError(GitHubAPIError):
    """Raised when a repository, pull request or hook cannot be found."""

    pass


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded."""

    pass


def is_indexable_path(path: str) -> bool:
    """Return False for images, plain text, markdown and PDFs."""
    return not path.lower().endswith(SKIPPED_EXTENSIONS)


def format_review_comment(review: str) -> str:
    """Wrap generated review markdown with the comment banner and footer."""
    return f"{REVIEW_COMMENT_HEADER}{review}{REVIEW_COMMENT_FOOTER}"


# ============================================================================
# GitHub API Client
# ============================================================================


class GitHubAPIClient:
    """
    Client for GitHub API v3.

    All calls are authenticated with the token of the user that owns the
    repository.
    """

    BASE_URL = "https://api.github.com"

    def __init__(self, github_token: str, timeout: int = 10):
        """
        Initialize GitHub API client.

        Args:
            github_token: User's GitHub OAuth access token
            timeout: Request timeout in seconds

        Raises:
            ValueError: If no GitHub token is given
        """
        if not github_token:
            raise ValueError("GitHub token not provided")
        self.token = github_token
        self.timeout = timeout

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        accept: str = "application/vnd.github.v3+json",
        raw: bool = False,
        **kwargs,
    ) -> Any:
        """
        Make authenticated HTTP request to GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (e.g., "/repos/owner/repo/issues/1/comments")
            data: Request body data (for POST/PATCH)
            accept: Accept header (media type)
            raw: Return the response text instead of decoded JSON
            **kwargs: Additional requests parameters

        Returns:
            JSON response (or text when raw=True); {} for empty responses

        Raises:
            GitHubAPIError: If request fails
            RateLimitError: If rate limit exceeded
            GitHubNotFoundError: If resource not found
        """
        url = f"{self.BASE_URL}{endpoint}"

        headers = {
            "Authorization": f"token {self.token}",
            "Accept": accept,
            "User-Agent": "CodeRevU/1.0",
        }

        try:
            response = requests.request(
                method=method,
                url=url,
                json=data,
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout:
            logger.error("GitHub API request timed out")
            raise GitHubAPIError("GitHub API request timed out")
        except requests.RequestException as e:
            logger.error(f"GitHub API request failed: {str(e)}")
            raise GitHubAPIError(f"GitHub API request failed: {str(e)}")

        # Handle rate limiting
        if response.status_code in (403, 429) and response.headers.get(
            "X-RateLimit-Remaining"
        ) == "0":
            reset_time = response.headers.get("X-RateLimit-Reset", "unknown")
            logger.warning(f"GitHub API rate limit exceeded. Reset: {reset_time}")
            raise RateLimitError(
                "GitHub API rate limit exceeded",
                status_code=response.status_code,
                response=response.text,
            )

        # Handle 404 (resource not found)
        if response.status_code == 404:
            logger.error(f"GitHub resource not found: {endpoint}")
            raise GitHubNotFoundError(
                f"Repository or resource not found: {endpoint}",
                status_code=404,
                response=response.text,
            )

        # Handle other errors
        if response.status_code >= 400:
            logger.error(f"GitHub API error: {response.status_code} {response.text}")
            raise GitHubAPIError(
                f"GitHub API request failed: {response.status_code}",
                status_code=response.status_code,
                response=response.text,
            )

        if raw:
            return response.text
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # ------------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------------

    def get_pull_request_diff(
        self, owner: str, repo: str, pr_number: int
    ) -> Dict[str, Any]:
        """
        Fetch a pull request's unified diff, title and description.

        Returns:
            {"diff": str, "title": str, "description": str}
        """
        endpoint = f"/repos/{owner}/{repo}/pulls/{pr_number}"

        pull_request = self._make_request("GET", endpoint)
        diff = self._make_request(
            "GET", endpoint, accept="application/vnd.github.v3.diff", raw=True
        )

        logger.info(f"Fetched diff for {owner}/{repo}#{pr_number}: {len(diff)} bytes")
        return {
            "diff": diff,
            "title": pull_request.get("title") or "",
            "description": pull_request.get("body") or "",
        }

    def post_review_comment(
        self, owner: str, repo: str, pr_number: int, review: str
    ) -> Dict[str, Any]:
        """
        Post an AI review as an issue comment on the pull request.

        Returns:
            API response with comment details

        Raises:
            GitHubAPIError: If posting comment fails
        """
        endpoint = f"/repos/{owner}/{repo}/issues/{pr_number}/comments"

        try:
            response = self._make_request(
                method="POST",
                endpoint=endpoint,
                data={"body": format_review_comment(review)},
            )
            logger.info(f"Posted review comment to {owner}/{repo}#{pr_number}")
            return response
        except GitHubAPIError as e:
            logger.error(
                f"Failed to post comment to {owner}/{repo}#{pr_number}: {str(e)}"
            )
            raise

    # ------------------------------------------------------------------------
    # Repository contents
    # ------------------------------------------------------------------------

    def list_repo_files(
        self, owner: str, repo: str, path: str = ""
    ) -> List[Dict[str, str]]:
        """
        Recursively fetch and decode every indexable file of a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            path: Directory to start from (repository root by default)

        Returns:
            List of {"path": str, "content": str}
        """
        endpoint = f"/repos/{owner}/{repo}/contents/{quote(path)}"
        entries = self._make_request("GET", endpoint)

        # A file path returns a single object instead of a listing
        if isinstance(entries, dict):
            entries = [entries]

        files: List[Dict[str, str]] = []
        for entry in entries:
            entry_type = entry.get("type")
            entry_path = entry.get("path", "")

            if entry_type == "dir":
                files.extend(self.list_repo_files(owner, repo, entry_path))
            elif entry_type == "file" and is_indexable_path(entry_path):
                content = entry.get("content")
                if content is None:
                    detail = self._make_request(
                        "GET", f"/repos/{owner}/{repo}/contents/{quote(entry_path)}"
                    )
                    content = detail.get("content")
                if not content:
                    continue
                files.append(
                    {
                        "path": entry_path,
                        "content": base64.b64decode(content).decode(
                            "utf-8", errors="replace"
                        ),
                    }
                )

        return files

    def list_user_repositories(
        self, page: int = 1, per_page: int = 10
    ) -> List[Dict[str, Any]]:
        """List repositories of the authenticated user, most recently updated first."""
        return self._make_request(
            "GET",
            "/user/repos",
            params={
                "sort": "updated",
                "direction": "desc",
                "visibility": "all",
                "page": page,
                "per_page": per_page,
            },
        )

    # ------------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------------

    def create_webhook(
        self, owner: str, repo: str, webhook_url: str, secret: str
    ) -> Dict[str, Any]:
        """
        Register the review webhook on a repository.

        Returns:
            Created hook, or the existing one if the URL is already registered
        """
        endpoint = f"/repos/{owner}/{repo}/hooks"

        for hook in self._make_request("GET", endpoint):
            if hook.get("config", {}).get("url") == webhook_url:
                logger.info(f"Webhook already registered on {owner}/{repo}")
                return hook

        hook = self._make_request(
            "POST",
            endpoint,
            data={
                "name": "web",
                "active": True,
                "events": ["pull_request"],
                "config": {
                    "url": webhook_url,
                    "content_type": "json",
                    "secret": secret,
                    "insecure_ssl": "0",
                },
            },
        )
        logger.info(f"Created webhook {hook.get('id')} on {owner}/{repo}")
        return hook

    def delete_webhook(self, owner: str, repo: str, webhook_url: str) -> bool:
        """
        Remove the review webhook from a repository.

        Returns:
            True if a hook was deleted, False if none matched
        """
        endpoint = f"/repos/{owner}/{repo}/hooks"

        for hook in self._make_request("GET", endpoint):
            if hook.get("config", {}).get("url") == webhook_url:
                self._make_request("DELETE", f"{endpoint}/{hook['id']}")
                logger.info(f"Deleted webhook {hook['id']} from {owner}/{repo}")
                return True

        logger.info(f"No webhook for {webhook_url} on {owner}/{repo}")
        return False
