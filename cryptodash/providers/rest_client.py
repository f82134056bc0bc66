from __future__ import annotations

from typing import Any

import aiohttp
from aiohttp import ClientResponseError

from cryptodash.core.logging import get_logger, safe_json


class RestClient:
    def __init__(self, base_url: str, headers: dict[str, str] | None = None, timeout_s: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = dict(headers or {})
        self.timeout_s = timeout_s
        self._log = get_logger(__name__)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        url = self.url_for(path)
        self._log.debug("REST request %s", safe_json({"url": url, "params": params}))
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)

        async with aiohttp.ClientSession(headers=self.headers) as session:
            async with session.get(url, params=params, timeout=timeout) as resp:
                payload = await resp.text()
                if resp.status >= 400:
                    detail = payload
                    try:
                        parsed = await resp.json(content_type=None)
                        if isinstance(parsed, dict):
                            error = parsed.get("error") or parsed.get("Message") or parsed.get("status")
                            detail = f"error={error}" if error is not None else str(parsed)
                    except Exception:
                        pass
                    self._log.warning("REST error %s", safe_json({"url": url, "status": resp.status, "detail": detail}))
                    raise ClientResponseError(
                        resp.request_info,
                        tuple(resp.history),
                        status=resp.status,
                        message=str(detail),
                        headers=resp.headers,
                    )
                return await resp.json(content_type=None)
