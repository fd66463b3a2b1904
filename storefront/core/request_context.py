from __future__ import annotations

from contextvars import ContextVar


_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_CLIENT_IP_CTX: ContextVar[str | None] = ContextVar("client_ip", default=None)


def set_request_context(*, request_id: str | None = None, client_ip: str | None = None) -> None:
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if client_ip is not None:
        _CLIENT_IP_CTX.set(client_ip)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_client_ip() -> str | None:
    return _CLIENT_IP_CTX.get()


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    _CLIENT_IP_CTX.set(None)
