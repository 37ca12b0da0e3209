"""
Clockify API client.

Posts time entries and lists projects. Used as the poster for sync runs.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.clockify.me/api/v1"
API_KEY_ENV_VAR = "CLOCKIFY_API_KEY"
PAGE_SIZE = 50

_STATUS_HINTS = {
    400: "invalid project ID or request parameters",
    401: "check your API key",
    403: "access forbidden - check workspace/project permissions",
    404: "project or workspace not found",
    422: "invalid request - check time range and project ID",
}


class ClockifyError(Exception):
    """Raised when a Clockify request fails."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def status_hint(status_code: int) -> str:
    """Human hint for a failing HTTP status."""
    return _STATUS_HINTS.get(status_code, "unexpected error")


@dataclass(frozen=True)
class ClockifyProject:
    """A project in a Clockify workspace."""
    id: str
    name: str
    archived: bool = False


def _format_instant(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ClockifyClient:
    """Thin Clockify REST client bound to one workspace.

    All failures surface as ClockifyError; nothing is retried.
    """

    def __init__(
        self,
        workspace_id: str,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None
    ):
        """Initialize the client.

        Args:
            workspace_id: Clockify workspace id (required)
            api_key: API key; read from CLOCKIFY_API_KEY when omitted
            base_url: API root
            timeout: Request timeout in seconds
            http_client: Preconfigured httpx client (mainly for tests)

        Raises:
            ValueError: If workspace_id or the API key is missing
        """
        if not workspace_id or not workspace_id.strip():
            raise ValueError("workspace_id is required and cannot be empty")
        api_key = api_key or os.environ.get(API_KEY_ENV_VAR)
        if not api_key:
            raise ValueError(f"Clockify API key missing: set {API_KEY_ENV_VAR}")

        self.workspace_id = workspace_id
        self.client = http_client or httpx.Client(base_url=base_url, timeout=timeout)
        self.client.headers["X-Api-Key"] = api_key

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        logger.debug("%s %s", method, path)
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            raise ClockifyError(
                f"Clockify API returned HTTP {code}: {status_hint(code)}",
                status_code=code
            ) from e
        except httpx.HTTPError as e:
            raise ClockifyError(f"Network error contacting Clockify: {e}") from e
        return response

    def post_time_entry(
        self,
        project_id: str,
        start: datetime,
        end: datetime,
        description: str
    ) -> str:
        """Create a time entry and return its id.

        Args:
            project_id: Clockify project id
            start: Entry start (aware datetime)
            end: Entry end (aware datetime)
            description: Entry description

        Returns:
            Id of the created time entry

        Raises:
            ClockifyError: On HTTP, transport or response parsing failure
        """
        response = self._request(
            "POST",
            f"/workspaces/{self.workspace_id}/time-entries",
            json={
                "projectId": project_id,
                "start": _format_instant(start),
                "end": _format_instant(end),
                "description": description,
            }
        )
        try:
            return str(response.json()["id"])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ClockifyError("Failed to parse Clockify response JSON") from e

    def list_projects(self) -> List[ClockifyProject]:
        """List all projects in the workspace, following pagination.

        Raises:
            ClockifyError: On HTTP, transport or response parsing failure
        """
        projects: List[ClockifyProject] = []
        page = 1
        while True:
            response = self._request(
                "GET",
                f"/workspaces/{self.workspace_id}/projects",
                params={"page-size": PAGE_SIZE, "page": page}
            )
            try:
                batch = [
                    ClockifyProject(
                        id=item["id"],
                        name=item["name"],
                        archived=bool(item.get("archived", False))
                    )
                    for item in response.json()
                ]
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                raise ClockifyError("Failed to parse Clockify response JSON") from e

            projects.extend(batch)
            if len(batch) < PAGE_SIZE:
                return projects
            page += 1

    def close(self) -> None:
        self.client.close()
