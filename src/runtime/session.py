"""
Runtime context: 생성된 테스트 코드가 사용하는 최소 실행 환경.

제공:
- RuntimeContext.execute(request_config) → httpx.Response
- RuntimeContext.substitute_variables(text) → {{var}} 치환
- RuntimeContext.output(key, value) → 이후 요청에서 쓸 변수 기록
"""

import base64
import logging
import re
from typing import Any

import httpx

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

# timeout 미지정 시 (ms)
DEFAULT_TIMEOUT_MS = 30000


class RuntimeContext:
    """
    요청 실행 + 변수 저장소.

    Usage:
        with RuntimeContext({"baseUrl": "https://api.example.com"}) as ctx:
            response = ctx.execute({"method": "GET", "url": "{{baseUrl}}/users"})
            ctx.output("userId", response.json()["id"])
    """

    def __init__(
        self,
        variables: dict[str, Any] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.variables: dict[str, Any] = dict(variables or {})
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client()
        return self._client

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "RuntimeContext":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # =========================================================================
    # Variables
    # =========================================================================

    def substitute_variables(self, text: str) -> str:
        """
        {{name}} / {{a.b}} → 변수 값. 모르는 변수는 그대로 둠.

        Examples:
            >>> RuntimeContext({"host": "x"}).substitute_variables("https://{{host}}/y")
            'https://x/y'
        """

        def replace(match: re.Match[str]) -> str:
            value = self._lookup(match.group(1).strip())
            return match.group(0) if value is None else str(value)

        return VARIABLE_PATTERN.sub(replace, text)

    def output(self, key: str, value: Any) -> None:
        """이후 요청/스크립트에서 쓸 변수 기록."""
        self.variables[key] = value

    def _lookup(self, dotted: str) -> Any:
        current: Any = self.variables
        for part in dotted.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return None
        return current

    # =========================================================================
    # Execute
    # =========================================================================

    def execute(self, request_config: dict[str, Any]) -> httpx.Response:
        """
        요청 레코드(워크북 Request 형태) 실행.

        Args:
            request_config: method, url, headers, queryStringParams, body, timeout,
                numberOfRedirects

        Raises:
            httpx.HTTPError: 전송 실패
        """
        method = request_config.get("method", "GET")
        url = self.substitute_variables(request_config.get("url", ""))
        timeout_ms = request_config.get("timeout") or DEFAULT_TIMEOUT_MS
        redirects = request_config.get("numberOfRedirects")

        kwargs: dict[str, Any] = {
            "headers": self._name_values(request_config.get("headers")),
            "params": self._name_values(request_config.get("queryStringParams")),
            "timeout": timeout_ms / 1000,
            "follow_redirects": redirects != 0,
        }
        kwargs.update(self._body_kwargs(request_config.get("body")))

        logger.debug(f"{method} {url}")
        return self.client.request(method, url, **kwargs)

    def _name_values(self, items: list[dict[str, Any]] | None) -> dict[str, str]:
        if not items:
            return {}
        return {
            self.substitute_variables(item["name"]): self.substitute_variables(str(item.get("value", "")))
            for item in items
            if not item.get("disabled")
        }

    def _body_kwargs(self, body: dict[str, Any] | None) -> dict[str, Any]:
        if not body or body.get("type") in (None, "None"):
            return {}
        body_type = body["type"]
        data = body.get("data")
        if body_type == "JSON":
            return {"json": data}
        if body_type in ("Text", "XML"):
            return {"content": self.substitute_variables(data or "").encode("utf-8")}
        if body_type == "Form":
            return {"data": self._name_values(data)}
        if body_type == "Raw":
            raw = base64.b64decode(data) if isinstance(data, str) else bytes(data or [])
            return {"content": raw}
        raise ValueError(f"Unsupported body type: {body_type}")
