from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

JsonDict = dict[str, Any]

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

StartResponse = Callable[[str, list[tuple[str, str]]], Any]


@dataclass(slots=True)
class ApiResponse:
    status_code: int
    body: JsonDict | str | bytes
    headers: dict[str, str] = field(default_factory=dict)
    content_type: str = JSON_CONTENT_TYPE

    def encode_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    def to_wsgi(self, start_response: StartResponse) -> Iterable[bytes]:
        """Start a WSGI response and return its body."""
        body = self.encode_body()
        status = f"{self.status_code} {HTTPStatus(self.status_code).phrase}"
        headers = {
            "content-type": self.content_type,
            "content-length": str(len(body)),
            **self.headers,
        }
        start_response(status, list(headers.items()))
        return [body]


def _request_headers(request_id: str | None) -> dict[str, str]:
    return {"x-request-id": request_id} if request_id else {}


def json_error(
    status_code: int, code: str, message: str, *, request_id: str | None = None
) -> ApiResponse:
    payload: JsonDict = {"error": {"code": code, "message": message}}
    return ApiResponse(status_code=status_code, body=payload, headers=_request_headers(request_id))


def json_ok(payload: Mapping[str, Any], *, request_id: str | None = None) -> ApiResponse:
    return ApiResponse(status_code=200, body=dict(payload), headers=_request_headers(request_id))


def text_ok(body: str | bytes, content_type: str, *, request_id: str | None = None) -> ApiResponse:
    return ApiResponse(
        status_code=200,
        body=body,
        headers=_request_headers(request_id),
        content_type=content_type,
    )
