"""Scheduler Tools - Periodic Live Album Updates

Tools:
- live_album_scheduler_status: State, interval and last sweep summary
- start_live_album_scheduler: Arm the periodic timer
- stop_live_album_scheduler: Disarm it, waiting for any sweep in flight
- run_live_album_sweep: Update every enabled live and smart album now
"""

import logging
from typing import Any

from ..livealbums.service import get_live_album_service
from ..observability import trace_tool
from .responses import format_error_response

logger = logging.getLogger(__name__)

_NO_INPUT = {"type": "object", "properties": {}}


@trace_tool("live_album_scheduler_status")
async def scheduler_status_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    try:
        status = get_live_album_service().scheduler_status()
        message = f"Live album scheduler is {status['state']}"
        if not status["enabled"]:
            message += " (live albums are disabled by configuration)"
        elif status["running"]:
            message += f", sweeping every {status['intervalSeconds']:g}s"
        if status["sweeping"]:
            message += "; a sweep is in progress"
        return {"content": [{"type": "text", "text": message}], "data": status}

    except Exception as e:
        logger.exception("Unexpected error in live_album_scheduler_status tool")
        return format_error_response("Unexpected error", str(e))


@trace_tool("start_live_album_scheduler")
async def start_scheduler_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    try:
        service = get_live_album_service()
        running = await service.start_scheduler()
        message = (
            "Live album scheduler is running"
            if running
            else "Live albums are disabled by configuration; scheduler not started"
        )
        return {
            "content": [{"type": "text", "text": message}],
            "data": service.scheduler_status(),
        }

    except Exception as e:
        logger.exception("Unexpected error in start_live_album_scheduler tool")
        return format_error_response("Unexpected error", str(e))


@trace_tool("stop_live_album_scheduler")
async def stop_scheduler_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    try:
        service = get_live_album_service()
        await service.stop_scheduler()
        return {
            "content": [{"type": "text", "text": "Live album scheduler stopped"}],
            "data": service.scheduler_status(),
        }

    except Exception as e:
        logger.exception("Unexpected error in stop_live_album_scheduler tool")
        return format_error_response("Unexpected error", str(e))


@trace_tool("run_live_album_sweep")
async def run_sweep_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    """Run a full sweep now, after any sweep already in flight."""
    try:
        sweep = await get_live_album_service().run_sweep()
        summary = sweep.summary()
        message = (
            f"Sweep finished: {summary['processed']} processed, {summary['success']} succeeded, "
            f"{summary['errors']} failed, {summary['skipped']} skipped; "
            f"added {summary['totalAdded']}, removed {summary['totalRemoved']}"
        )
        return {
            "content": [{"type": "text", "text": message}],
            "data": {
                "summary": summary,
                "results": [r.to_response() for r in sweep.results],
                "enumerationErrors": sweep.enumeration_errors,
            },
        }

    except Exception as e:
        logger.exception("Unexpected error in run_live_album_sweep tool")
        return format_error_response("Unexpected error", str(e))


live_album_scheduler_status = {
    "name": "live_album_scheduler_status",
    "description": "Report whether the live album scheduler is running and summarize the last sweep.",
    "inputSchema": _NO_INPUT,
    "handler": scheduler_status_handler,
}

start_live_album_scheduler = {
    "name": "start_live_album_scheduler",
    "description": "Start periodic updates of all enabled live and smart albums.",
    "inputSchema": _NO_INPUT,
    "handler": start_scheduler_handler,
}

stop_live_album_scheduler = {
    "name": "stop_live_album_scheduler",
    "description": "Stop periodic updates. Waits for a sweep in progress to finish.",
    "inputSchema": _NO_INPUT,
    "handler": stop_scheduler_handler,
}

run_live_album_sweep = {
    "name": "run_live_album_sweep",
    "description": "Update every enabled live and smart album now and report per-album results.",
    "inputSchema": _NO_INPUT,
    "handler": run_sweep_handler,
}
