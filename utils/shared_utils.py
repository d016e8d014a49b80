"""
Shared utility functions for routers, services and middleware
"""
import json
import logging
from typing import Optional

from starlette.requests import Request

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> Optional[str]:
    """Network origin of a request: first X-Forwarded-For entry, else the socket peer."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        # Take first IP in the list
        first = xff.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return client.host if client else None


def log_endpoint_event(endpoint: str, project_id: Optional[str] = None, result: str = "success", details: Optional[dict] = None):
    """Log endpoint execution to app.log"""
    line = f"{endpoint} | project={project_id} | {result} | {json.dumps(details or {}, default=str)}"
    if result == "error":
        logger.error(line)
    else:
        logger.info(line)
