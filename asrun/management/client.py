# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Management client for a running application server.

Speaks the JSON-over-HTTP management API: operation requests are POSTed to
``/management`` and deployment content is uploaded to
``/management/add-content``.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from asrun.core.exceptions import ManagementError
from asrun.management.commands import composite


@runtime_checkable
class ManagementClient(Protocol):
    """Channel to a running server for administrative operations."""

    async def execute(self, operation: dict[str, Any]) -> Any:
        """Execute one operation request and return its result.

        Raises:
            ManagementError: If the operation fails or the server is unreachable.
        """
        ...

    async def server_state(self) -> str | None:
        """Read the server's process state, or None if it cannot be read."""
        ...

    async def deploy(self, file: Path, name: str) -> None:
        """Upload file and deploy it under name, replacing an existing deployment.

        Raises:
            ManagementError: If upload or deployment fails.
        """
        ...

    async def shutdown(self) -> None:
        """Ask the server to shut itself down."""
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


def _failure_description(data: Any) -> str:
    if isinstance(data, dict):
        description = data.get("failure-description")
        if description is not None:
            return str(description)
    return f"operation failed: {data!r}"


class HttpManagementClient:
    """ManagementClient over the HTTP management interface.

    Example:
        >>> client = HttpManagementClient("http://localhost:9990/management")
        >>> await client.execute({"operation": "read-resource", "address": []})

    Args:
        url: Management endpoint, e.g. ``http://localhost:9990/management``.
        username: Management user; enables digest authentication.
        password: Management password.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        auth = httpx.DigestAuth(username, password or "") if username else None
        self._client = httpx.AsyncClient(
            auth=auth,
            timeout=httpx.Timeout(timeout, connect=5.0),
            transport=transport,
        )

    def _handle_response(self, response: httpx.Response, operation: str) -> Any:
        """Convert a management response to its result.

        Args:
            response: HTTP response of the management endpoint.
            operation: Operation name for error reporting.

        Raises:
            ManagementError: If authentication fails or the outcome is not success.
        """
        if response.status_code == 401:
            raise ManagementError("Management authentication failed", operation)
        try:
            data = response.json()
        except ValueError:
            raise ManagementError(
                f"Unexpected response (HTTP {response.status_code}): {response.text[:200]}",
                operation,
            ) from None
        if not isinstance(data, dict) or data.get("outcome") != "success":
            raise ManagementError(_failure_description(data), operation)
        return data.get("result")

    async def execute(self, operation: dict[str, Any]) -> Any:
        name = str(operation.get("operation"))
        try:
            response = await self._client.post(self.url, json=operation)
        except httpx.HTTPError as e:
            raise ManagementError(
                f"Management interface at {self.url} unreachable: {e}", name
            ) from e
        return self._handle_response(response, name)

    async def server_state(self) -> str | None:
        try:
            result = await self.execute(
                {"operation": "read-attribute", "address": [], "name": "server-state"}
            )
        except ManagementError:
            return None
        return str(result) if result is not None else None

    async def is_running(self) -> bool:
        return await self.server_state() == "running"

    async def upload(self, file: Path) -> dict[str, Any]:
        """Upload deployment content.

        Returns:
            Content hash reference to use in a deployment ``content`` list.
        """
        content = await asyncio.to_thread(file.read_bytes)
        try:
            response = await self._client.post(
                f"{self.url}/add-content",
                files={"file": (file.name, content, "application/octet-stream")},
            )
        except httpx.HTTPError as e:
            raise ManagementError(f"Upload of '{file.name}' failed: {e}", "add-content") from e
        result = self._handle_response(response, "add-content")
        if not isinstance(result, dict):
            raise ManagementError(f"Upload returned no content hash: {result!r}", "add-content")
        return result

    async def deployment_names(self) -> list[str]:
        result = await self.execute(
            {"operation": "read-children-names", "address": [], "child-type": "deployment"}
        )
        return list(result or [])

    async def deploy(self, file: Path, name: str) -> None:
        content = [{"hash": await self.upload(file)}]
        if name in await self.deployment_names():
            logger.info("Replacing existing deployment", name=name)
            await self.execute(
                {
                    "operation": "full-replace-deployment",
                    "address": [],
                    "name": name,
                    "content": content,
                    "enabled": True,
                }
            )
            return

        address = [{"deployment": name}]
        await self.execute(
            composite(
                [
                    {"operation": "add", "address": address, "content": content},
                    {"operation": "deploy", "address": address},
                ]
            )
        )

    async def shutdown(self) -> None:
        await self.execute({"operation": "shutdown", "address": []})

    async def close(self) -> None:
        await self._client.aclose()
