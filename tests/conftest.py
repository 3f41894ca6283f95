"""
Pytest fixtures for the transcoder tests.

테스트 구성:
- 정상 워크북, 구조 위반 워크북, 깊은 중첩 워크북 분리
- 파일이 필요한 테스트는 tmp_path 아래에 생성
"""

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from src.core.config import TranscoderConfig
from src.domain.workbook import Workbook
from tests.helpers import make_group, make_request, make_workbook

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def config() -> TranscoderConfig:
    """기본 설정 (단일 워커로 결정론적)."""
    return TranscoderConfig(max_workers=1)


# =============================================================================
# Workbook Fixtures
# =============================================================================

@pytest.fixture
def simple_workbook_data() -> dict[str, Any]:
    """그룹 G(SEQUENTIAL) 안에 요청 R(GET https://x/y, timeout 5000) 하나."""
    return make_workbook([
        make_group(
            "group-g",
            "G",
            [make_request("request-r", "R", timeout=5000)],
            execution="SEQUENTIAL",
        )
    ])


@pytest.fixture
def sample_workbook_data() -> dict[str, Any]:
    """
    필드를 골고루 쓰는 워크북.

    포함:
    - 중첩 그룹 + 이름이 같은 형제 요청
    - 헤더/쿼리/JSON body/Form body/Raw body
    - 최상위 단독 요청
    - scenarios/authorizations 섹션, 알 수 없는 키
    """
    crud = make_group(
        "08481c50-b8b7-4a63-9b1d-1a2b3c4d5e6f",
        "CRUD Operations",
        [
            make_request(
                "create-1",
                "Create",
                method="POST",
                url="{{baseUrl}}/items",
                headers=[{"name": "Content-Type", "value": "application/json"}],
                body={"type": "JSON", "data": {"name": "widget", "tags": ["a", "b"]}},
                test='assert response.status_code == 201\ncontext.output("itemId", response.json()["id"])',
                timeout=5000,
            ),
            make_request(
                "read-1",
                "Read",
                url="{{baseUrl}}/items/{{itemId}}",
                queryStringParams=[
                    {"name": "expand", "value": "all"},
                    {"name": "debug", "value": "1", "disabled": True},
                ],
                test="# 응답 확인\nassert response.status_code == 200",
                numberOfRedirects=0,
            ),
            make_group(
                "nested-1",
                "Nested",
                [
                    make_request("dup-1", "Test", test="assert True"),
                    make_request("dup-2", "Test", method="DELETE"),
                ],
                execution="CONCURRENT",
                runs=2,
                multiRunExecution="SEQUENTIAL",
                selectedScenario={"id": "scenario-1", "name": "Local"},
            ),
        ],
        execution="SEQUENTIAL",
    )
    upload = make_request(
        "upload-1",
        "Upload Form",
        method="PUT",
        url="https://example.com/upload",
        body={"type": "Form", "data": [{"name": "file", "value": "a.txt"}]},
        selectedAuthorization={"id": "auth-1", "name": "Basic"},
        runs=1,
        customField={"kept": True},
    )
    raw = make_request(
        "raw-1",
        "Raw Bytes",
        method="POST",
        body={"type": "Raw", "data": "aGVsbG8="},
        test="for i in range(3):\n    assert i < 3\n\n    assert response is not None",
    )
    return make_workbook(
        [crud, upload, raw],
        scenarios=[
            {
                "id": "scenario-1",
                "name": "Local",
                "variables": [{"name": "baseUrl", "value": "http://localhost:8080", "type": "TEXT"}],
            }
        ],
        authorizations=[{"id": "auth-1", "name": "Basic", "type": "Basic", "username": "u"}],
        defaults={"selectedScenario": {"id": "scenario-1", "name": "Local"}},
    )


@pytest.fixture
def simple_workbook(simple_workbook_data: dict[str, Any]) -> Workbook:
    return Workbook.from_dict(copy.deepcopy(simple_workbook_data))


@pytest.fixture
def sample_workbook(sample_workbook_data: dict[str, Any]) -> Workbook:
    return Workbook.from_dict(copy.deepcopy(sample_workbook_data))


@pytest.fixture
def workbook_file(tmp_path: Path, sample_workbook_data: dict[str, Any]) -> Path:
    """디스크의 .apicize 파일."""
    path = tmp_path / "demo.apicize"
    path.write_text(json.dumps(sample_workbook_data, indent=2), encoding="utf-8")
    return path
