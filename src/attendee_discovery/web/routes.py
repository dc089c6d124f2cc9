"""API routes for network discovery and terminal management"""

import ipaddress
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel, Field

from attendee_discovery.context import AppContext
from attendee_discovery.discovery.planner import select_subnet
from attendee_discovery.exceptions import PlannerError, TerminalError
from attendee_discovery.terminal.client import SIMPLE_ACTIONS, SWITCH_NETWORK, TerminalClient
from attendee_discovery.terminal.monitor import NETWORK_SWITCH_SETTLE_TIME
from attendee_discovery.web.app import get_app_context

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_context() -> AppContext:
    """Get AppContext or fail the request."""
    context = get_app_context()
    if not context:
        raise HTTPException(status_code=503, detail="Application context not available")
    return context


def _terminal_address(ip: str) -> str:
    try:
        return str(ipaddress.IPv4Address(ip))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid terminal address: {ip}") from None


def _terminal_failure(error: TerminalError) -> HTTPException:
    return HTTPException(status_code=502, detail={"message": error.message, "level": error.level})


class ScanRequest(BaseModel):
    subnet: Optional[str] = None
    batch_size: Optional[int] = Field(default=None, ge=1, le=255)
    probe_timeout: Optional[float] = Field(default=None, gt=0, le=30)


class NetworkCredentials(BaseModel):
    ssid: str = ""
    password: str = ""


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


# =============================================================================
# Discovery
# =============================================================================


@router.post("/api/discovery/scan", status_code=202)
async def start_scan(
    request: Optional[ScanRequest] = None,
    context: AppContext = Depends(_get_context),
) -> dict[str, Any]:
    """Start a scan session, replacing any running one"""
    request = request or ScanRequest()
    if request.subnet:
        try:
            select_subnet(request.subnet)
        except PlannerError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    session = await context.discovery.start_scan(
        subnet=request.subnet,
        batch_size=request.batch_size,
        probe_timeout=request.probe_timeout,
    )
    return session.to_dict()


@router.get("/api/discovery")
async def get_scan(context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    """Current scan session with live progress and published devices"""
    session = context.discovery.current_session
    if session is None:
        raise HTTPException(status_code=404, detail="No scan session")
    return session.to_dict()


@router.delete("/api/discovery")
async def cancel_scan(context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    """Stop scheduling further batches of the running session"""
    cancelled = await context.discovery.cancel_scan()
    return {"cancelled": cancelled}


@router.get("/api/discovery/subnets")
async def get_subnets(context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    config = context.config.discovery
    return {
        "subnets": list(config.subnets),
        "selected": select_subnet(config.subnet, config.subnets),
        "priority_ranges": [list(r) for r in config.priority_ranges],
    }


# =============================================================================
# Terminal management
# =============================================================================


@asynccontextmanager
async def _terminal(context: AppContext, ip: str) -> AsyncIterator[TerminalClient]:
    """Client for one request against a terminal; TerminalError becomes 502."""
    address = _terminal_address(ip)
    async with context.terminal_client(address) as client:
        try:
            yield client
        except TerminalError as e:
            raise _terminal_failure(e) from e


async def _call(context: AppContext, ip: str, method: str, *args: Any) -> Any:
    async with _terminal(context, ip) as client:
        return await getattr(client, method)(*args)


def _discovered_generic(context: AppContext, address: str) -> bool:
    session = context.discovery.current_session
    if session is None:
        return False
    return any(d.address == address and not d.is_recognized for d in session.devices)


@router.get("/api/terminals/selected")
async def get_selected(context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    return context.monitor.snapshot().to_dict()


@router.post("/api/terminals/{ip}/select")
async def select_terminal(ip: str, context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    """Start monitoring a terminal; generic network devices are refused"""
    address = _terminal_address(ip)
    if _discovered_generic(context, address):
        raise HTTPException(
            status_code=400,
            detail={"message": "Can only connect to Attendee devices", "level": "info"},
        )
    snapshot = await context.monitor.select(address)
    return snapshot.to_dict()


@router.get("/api/terminals/{ip}/config")
async def get_terminal_config(ip: str, context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    return await _call(context, ip, "get_config")


@router.post("/api/terminals/{ip}/config")
async def update_terminal_config(
    ip: str,
    changes: dict[str, Any] = Body(...),
    context: AppContext = Depends(_get_context),
) -> dict[str, Any]:
    """Apply a partial update and return the configuration as stored on the terminal"""
    async with _terminal(context, ip) as client:
        result = await client.update_config(changes)
        try:
            config = await client.get_config()
        except TerminalError as e:
            logger.warning(f"Config of {client.address} updated but could not be re-read: {e.message}")
            config = None
    return {"success": result.success, "message": result.message, "config": config}


@router.get("/api/terminals/{ip}/status")
async def get_terminal_status(ip: str, context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    status = await _call(context, ip, "get_status")
    return status.to_dict()


@router.get("/api/terminals/{ip}/logs")
async def get_terminal_logs(ip: str, context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    logs = await _call(context, ip, "get_logs")
    return logs.to_dict()


@router.get("/api/terminals/{ip}/firmware")
async def list_terminal_firmware(ip: str, context: AppContext = Depends(_get_context)) -> dict[str, Any]:
    files = await _call(context, ip, "list_firmware")
    return {"files": [vars(f) for f in files]}


@router.get("/api/terminals/{ip}/firmware/download")
async def download_terminal_firmware(
    ip: str,
    file: str = Query(..., min_length=1),
    context: AppContext = Depends(_get_context),
) -> Response:
    download = await _call(context, ip, "download_firmware", file)
    return Response(
        content=download.content,
        media_type=download.content_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


@router.post("/api/terminals/{ip}/actions/{action}")
async def perform_terminal_action(
    ip: str,
    action: str,
    credentials: Optional[NetworkCredentials] = None,
    context: AppContext = Depends(_get_context),
) -> dict[str, Any]:
    """
    Trigger an action on a terminal.

    When the terminal is the monitored one, its logs are refreshed right
    after a sync and its status once it has had time to rejoin WiFi after
    a network switch.
    """
    if action == SWITCH_NETWORK:
        credentials = credentials or NetworkCredentials()
        result = await _call(context, ip, "switch_network", credentials.ssid, credentials.password)
    elif action in SIMPLE_ACTIONS:
        result = await _call(context, ip, "perform_action", action)
    else:
        raise HTTPException(status_code=400, detail=f"Unknown terminal action: {action}")

    monitor = context.monitor
    if monitor.selected == _terminal_address(ip):
        if action == "sync":
            await monitor.refresh()
        elif action == SWITCH_NETWORK:
            monitor.schedule_refresh(NETWORK_SWITCH_SETTLE_TIME)

    return {"success": result.success, "message": result.message}
