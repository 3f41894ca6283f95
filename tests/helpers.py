"""
테스트용 워크북 dict 생성 헬퍼.

conftest 픽스처와 개별 테스트 모듈이 함께 사용.
"""

from typing import Any


def make_request(node_id: str, name: str, **fields: Any) -> dict[str, Any]:
    """Request dict (기본: GET https://x/y)."""
    data: dict[str, Any] = {"id": node_id, "name": name, "url": "https://x/y", "method": "GET"}
    data.update(fields)
    return data


def make_group(node_id: str, name: str, children: list[dict[str, Any]], **fields: Any) -> dict[str, Any]:
    """RequestGroup dict."""
    data: dict[str, Any] = {"id": node_id, "name": name, "children": children}
    data.update(fields)
    return data


def make_workbook(requests: list[dict[str, Any]], **sections: Any) -> dict[str, Any]:
    """최상위 키가 모두 있는 워크북 dict."""
    data: dict[str, Any] = {
        "version": 1,
        "requests": requests,
        "scenarios": [],
        "authorizations": [],
        "certificates": [],
        "proxies": [],
        "data": [],
        "defaults": {},
    }
    data.update(sections)
    return data


def nested_groups(depth: int) -> dict[str, Any]:
    """depth 단계 중첩 (depth-1개 그룹 + 가장 안쪽 요청 하나)."""
    node = make_request("leaf", "Leaf")
    for level in range(depth - 1, 0, -1):
        node = make_group(f"g{level}", f"Level {level}", [node])
    return node
