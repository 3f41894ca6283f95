"""
Manifest: 생성 프로젝트의 manifest.yaml.

역할:
- 유닛 순서 (워크북 최상위 노드 순서 = units 순서)
- requests 외 워크북 섹션 보존 (scenarios, authorizations, ...)

형식:
    format: 1
    source: demo.apicize
    units:
    - file: test_00_crud_operations.py
      id: 08481c50-...
      name: CRUD Operations
      kind: group
    workbook:
      version: 1
      scenarios: [...]
"""

from dataclasses import dataclass, field
from typing import Any

import yaml

from src.domain.constants import MANIFEST_FORMAT_VERSION, NODE_KIND_GROUP, NODE_KIND_REQUEST
from src.domain.errors import ErrorCodes, StructuralError
from src.services.validate import WorkbookValidator


@dataclass
class ManifestEntry:
    """유닛 하나."""
    file: str
    id: str
    name: str
    kind: str = NODE_KIND_GROUP

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "id": self.id, "name": self.name, "kind": self.kind}


@dataclass
class Manifest:
    """manifest.yaml 내용."""
    format: int = MANIFEST_FORMAT_VERSION
    source: str | None = None
    units: list[ManifestEntry] = field(default_factory=list)
    workbook: dict[str, Any] = field(default_factory=dict)

    def files(self) -> list[str]:
        return [entry.file for entry in self.units]

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "source": self.source,
            "units": [entry.to_dict() for entry in self.units],
            "workbook": self.workbook,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self.to_dict(),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        """
        dict → Manifest.

        Raises:
            StructuralError: 필수 키 누락/타입 오류 (MANIFEST_INVALID)
        """
        if not isinstance(data, dict):
            raise StructuralError(ErrorCodes.MANIFEST_INVALID, reason="manifest must be a mapping")

        units_raw = data.get("units", [])
        if not isinstance(units_raw, list):
            raise StructuralError(ErrorCodes.MANIFEST_INVALID, reason="units must be a list")

        units: list[ManifestEntry] = []
        for i, entry in enumerate(units_raw):
            if not isinstance(entry, dict) or not isinstance(entry.get("file"), str):
                raise StructuralError(
                    ErrorCodes.MANIFEST_INVALID,
                    reason="unit entry requires a file name",
                    index=i,
                )
            kind = entry.get("kind", NODE_KIND_GROUP)
            if kind not in (NODE_KIND_GROUP, NODE_KIND_REQUEST):
                raise StructuralError(
                    ErrorCodes.MANIFEST_INVALID,
                    reason=f"unknown unit kind: {kind!r}",
                    index=i,
                )
            units.append(
                ManifestEntry(
                    file=entry["file"],
                    id=str(entry.get("id", "")),
                    name=str(entry.get("name", "")),
                    kind=kind,
                )
            )

        workbook = data.get("workbook") or {}
        if not isinstance(workbook, dict):
            raise StructuralError(ErrorCodes.MANIFEST_INVALID, reason="workbook must be a mapping")
        violations = WorkbookValidator().validate_sections(workbook)
        if violations:
            raise StructuralError(
                ErrorCodes.MANIFEST_INVALID,
                reason="invalid workbook sections",
                violations=[v.to_dict() for v in violations],
            )

        return cls(
            format=data.get("format", MANIFEST_FORMAT_VERSION),
            source=data.get("source"),
            units=units,
            workbook=workbook,
        )

    @classmethod
    def from_yaml(cls, text: str) -> "Manifest":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise StructuralError(ErrorCodes.MANIFEST_INVALID, reason=str(e)) from e
        return cls.from_dict(data if data is not None else {})
