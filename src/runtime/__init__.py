"""
Runtime vocabulary for generated test units.

    from src.runtime import describe, it

    @describe("CRUD Operations")
    def crud_operations():
        @it("Create", method="POST", url="{{baseUrl}}/items")
        def create(context, response):
            assert response.status_code == 201

describe/it (와 별칭)은 함수에 선언 정보만 붙이고 그대로 돌려줌.
with describe("..."): 형태도 지원.
before_each/after_each/before_all/after_all은 훅 종류만 표시 (import 시 shared code kind).
"""

from collections.abc import Callable
from typing import Any, TypeVar

from src.domain.constants import HOOK_VOCABULARY, NODE_KIND_GROUP, NODE_KIND_REQUEST

from .session import RuntimeContext

F = TypeVar("F", bound=Callable[..., Any])

DECLARATION_ATTR = "__apicize_declaration__"
HOOK_ATTR = "__apicize_hook__"


class Declaration:
    """선언 하나 (데코레이터 겸 컨텍스트 매니저)."""

    def __init__(self, kind: str, name: str, config: dict[str, Any]) -> None:
        self.kind = kind
        self.name = name
        self.config = config

    def __call__(self, func: F) -> F:
        setattr(func, DECLARATION_ATTR, self)
        return func

    def __enter__(self) -> "Declaration":
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def __repr__(self) -> str:
        return f"Declaration(kind={self.kind!r}, name={self.name!r}, config={self.config!r})"


def describe(name: str, config: dict[str, Any] | None = None, **kwargs: Any) -> Declaration:
    """Group 선언."""
    return Declaration(NODE_KIND_GROUP, name, {**(config or {}), **kwargs})


def it(name: str, config: dict[str, Any] | None = None, **kwargs: Any) -> Declaration:
    """Request 선언."""
    return Declaration(NODE_KIND_REQUEST, name, {**(config or {}), **kwargs})


def declaration_of(func: Callable[..., Any]) -> Declaration | None:
    """함수에 붙은 선언 정보 (없으면 None)."""
    return getattr(func, DECLARATION_ATTR, None)


def hook(kind: str) -> Callable[[F], F]:
    """훅 데코레이터 생성 (kind는 before/after 별칭 허용)."""
    if kind not in HOOK_VOCABULARY:
        raise ValueError(f"Unknown hook kind: {kind!r}")
    canonical = HOOK_VOCABULARY[kind]

    def mark(func: F) -> F:
        setattr(func, HOOK_ATTR, canonical)
        return func

    return mark


def hook_of(func: Callable[..., Any]) -> str | None:
    """함수에 붙은 훅 종류 (없으면 None)."""
    return getattr(func, HOOK_ATTR, None)


before_each = hook("before_each")
after_each = hook("after_each")
before_all = hook("before_all")
after_all = hook("after_all")


# 별칭 (파서 어휘와 동일)
suite = group = context = describe
test = case = specify = it

__all__ = [
    "RuntimeContext",
    "Declaration",
    "describe",
    "it",
    "suite",
    "group",
    "context",
    "test",
    "case",
    "specify",
    "declaration_of",
    "hook",
    "hook_of",
    "before_each",
    "after_each",
    "before_all",
    "after_all",
]
