from typing import Optional

from fastapi import Request, WebSocket


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_subject_id(request: Request) -> Optional[str]:
    """Subject id set by the upstream identity proxy, or None for no session."""
    header = request.app.state.settings.auth_subject_header
    return _clean(request.headers.get(header))


def get_ws_subject_id(ws: WebSocket) -> Optional[str]:
    # Browsers cannot set headers on a WebSocket handshake, so a query param is accepted too.
    header = ws.app.state.settings.auth_subject_header
    return _clean(ws.headers.get(header)) or _clean(ws.query_params.get("subject"))
