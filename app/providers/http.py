from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from services.redaction import redact_dict

logger = logging.getLogger("umapesa.http")


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str


class HttpClient:
    def __init__(
        self,
        base_url: str = "",
        *,
        headers: dict[str, str] | None = None,
        timeout_s: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        name: str = "http",
    ):
        self.name = name
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers or {},
            timeout=timeout_s,
            follow_redirects=True,
            transport=transport,
        )

    def post(self, path: str, *, json_body: dict[str, Any] | None = None) -> HttpResponse:
        logger.info(
            "%s request method=POST path=%s body=%s",
            self.name,
            path,
            redact_dict(json_body or {}),
        )
        r = self._client.post(path, json=json_body)
        return self._wrap(r)

    def get(self, path: str, *, params: dict[str, Any] | None = None) -> HttpResponse:
        logger.info("%s request method=GET path=%s", self.name, path)
        r = self._client.get(path, params=params)
        return self._wrap(r)

    def close(self) -> None:
        self._client.close()

    def _wrap(self, r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = None

        log = logger.info if r.status_code < 400 else logger.error
        log(
            "%s response status=%s body=%s",
            self.name,
            r.status_code,
            redact_dict(payload) if payload else r.text[:300],
        )
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)

