"""Management API client for a single Attendee terminal"""

from typing import Any, Callable, Optional

import httpx

from attendee_discovery.exceptions import TerminalError
from attendee_discovery.log import get_structured_logger
from attendee_discovery.terminal.models import (
    ActionResult,
    FirmwareDownload,
    FirmwareFile,
    LogsInfo,
    TerminalStatus,
)

logger = get_structured_logger(__name__, component="terminal")

SIMPLE_ACTIONS = ("sync", "reset-wifi", "restart")
SWITCH_NETWORK = "switch-network"


class TerminalClient:
    """
    Request/response calls against one selected terminal.

    Calls are independent: no retries and no shared state with scanning.
    Each failure raises TerminalError with a message fit for the admin UI.
    """

    def __init__(
        self,
        address: str,
        timeout: float = 5.0,
        port: int = 80,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the terminal client.

        Args:
            address: Terminal IP address (e.g., 192.168.1.100)
            timeout: Per-request timeout in seconds
            port: Terminal web port
            client: Optional shared HTTP client; one is created lazily otherwise
        """
        self.address = address
        self.timeout = timeout
        self.base_url = f"http://{address}" if port == 80 else f"http://{address}:{port}"
        self._client = client
        self._owns_client = client is None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized"""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TerminalClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request_json(
        self,
        method: str,
        path: str,
        failure_message: str,
        parse: Optional[Callable[[dict[str, Any]], Any]] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Perform one call and decode its JSON object body.

        Transport errors, non-2xx statuses, bodies that are not JSON objects
        and payloads ``parse`` cannot read all raise TerminalError with
        ``failure_message``.
        """
        client = await self._ensure_client()
        try:
            response = await client.request(method, f"{self.base_url}{path}", **kwargs)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(failure_message, address=self.address, path=path, error=str(e))
            raise TerminalError(failure_message) from e
        except ValueError as e:
            logger.error("Terminal returned invalid JSON", address=self.address, path=path)
            raise TerminalError(failure_message) from e

        if not isinstance(data, dict):
            logger.error(
                "Terminal returned unexpected payload",
                address=self.address,
                path=path,
                payload_type=type(data).__name__,
            )
            raise TerminalError(failure_message)

        if parse is None:
            return data
        try:
            return parse(data)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Terminal payload could not be read", address=self.address, path=path, error=str(e))
            raise TerminalError(failure_message) from e

    async def get_config(self) -> dict[str, Any]:
        """Fetch the terminal configuration"""
        return await self._request_json("GET", "/api/config", "Failed to connect to device")

    async def update_config(self, changes: dict[str, Any]) -> ActionResult:
        """Send a partial configuration update"""
        data = await self._request_json(
            "POST",
            "/api/config",
            "Failed to update device configuration",
            json=changes,
        )
        if not data.get("success"):
            raise TerminalError(data.get("message") or "Failed to update configuration")
        logger.info("Terminal configuration updated", address=self.address, fields=sorted(changes))
        return ActionResult(
            success=True,
            message=data.get("message") or "Configuration updated successfully",
        )

    async def get_status(self) -> TerminalStatus:
        """Fetch runtime status"""
        return await self._request_json(
            "GET", "/api/status", "Failed to fetch device status", parse=TerminalStatus.from_payload
        )

    async def get_logs(self) -> LogsInfo:
        """Fetch offline log metadata"""
        return await self._request_json(
            "GET", "/api/logs", "Failed to fetch logs info", parse=LogsInfo.from_payload
        )

    async def list_firmware(self) -> list[FirmwareFile]:
        """List firmware files stored on the terminal"""
        return await self._request_json(
            "GET",
            "/api/firmware/list",
            "Failed to fetch firmware files",
            parse=lambda data: [FirmwareFile.from_payload(item) for item in data.get("files") or []],
        )

    async def _post_action(
        self,
        action: str,
        body: Optional[dict[str, str]] = None,
        failure: Optional[str] = None,
    ) -> ActionResult:
        failure = failure or f"Failed to perform {action}"
        kwargs: dict[str, Any] = {"json": body} if body is not None else {}
        data = await self._request_json("POST", f"/api/actions/{action}", failure, **kwargs)
        if not data.get("success"):
            raise TerminalError(data.get("error") or failure)
        logger.info("Terminal action completed", address=self.address, action=action)
        return ActionResult(success=True, message=data.get("message") or f"Action {action} completed")

    async def perform_action(self, action: str) -> ActionResult:
        """
        Trigger a named action.

        Args:
            action: One of "sync", "reset-wifi", "restart"

        Raises:
            ValueError: For unknown action names
            TerminalError: If the terminal rejects or cannot be reached
        """
        if action == SWITCH_NETWORK:
            raise ValueError("switch-network requires credentials, use switch_network()")
        if action not in SIMPLE_ACTIONS:
            raise ValueError(f"Unknown terminal action: {action}")
        return await self._post_action(action)

    async def switch_network(self, ssid: str, password: str = "") -> ActionResult:
        """Move the terminal to another WiFi network"""
        ssid = ssid.strip()
        if not ssid:
            raise TerminalError("Please enter a WiFi network name (SSID)")
        result = await self._post_action(
            SWITCH_NETWORK,
            {"ssid": ssid, "password": password},
            failure="Failed to switch network",
        )
        if result.message == f"Action {SWITCH_NETWORK} completed":
            result.message = "Network switch initiated"
        return result

    async def download_firmware(self, filename: str) -> FirmwareDownload:
        """
        Download a named firmware file.

        The terminal answers with the file contents, or with a JSON body
        ``{"error": ..., "note": ...}`` when the file cannot be served. A
        note is reported at info level rather than as a failure.
        """
        failure = f"Failed to download {filename}"
        client = await self._ensure_client()
        try:
            response = await client.get(
                f"{self.base_url}/api/firmware/download",
                params={"file": filename},
            )
        except httpx.HTTPError as e:
            logger.error(failure, address=self.address, error=str(e))
            raise TerminalError(failure) from e

        content_type = response.headers.get("content-type", "")

        if not response.is_success:
            _raise_download_error(response, failure, "Download failed")

        if "application/json" in content_type and _json_error(response):
            _raise_download_error(response, failure, failure)

        logger.info("Firmware downloaded", address=self.address, file=filename, size=len(response.content))
        return FirmwareDownload(
            filename=filename,
            content=response.content,
            content_type=content_type or "application/octet-stream",
        )


def _json_error(response: httpx.Response) -> bool:
    try:
        data = response.json()
    except ValueError:
        return False
    return isinstance(data, dict) and bool(data.get("error"))


def _raise_download_error(response: httpx.Response, failure: str, no_error: str) -> None:
    """
    Turn an error answer from the download endpoint into TerminalError.

    Args:
        failure: Message when the body is not a JSON object
        no_error: Message when the JSON object carries no ``error``
    """
    try:
        data = response.json()
    except ValueError:
        raise TerminalError(failure) from None

    if not isinstance(data, dict):
        raise TerminalError(failure)

    error = data.get("error")
    note = data.get("note")
    if error and note:
        raise TerminalError(note, level="info")
    if error:
        # JSON payload on a 2xx response carries the note as info
        level = "info" if response.is_success else "error"
        raise TerminalError(error, level=level)
    raise TerminalError(no_error)
