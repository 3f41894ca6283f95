"""
Domain Constants: 트랜스코더 전역 상수.

메타데이터 마커, 선언 어휘, 생성 프로젝트 레이아웃 등
export/import 양쪽에서 공유하는 값들.
"""

# =============================================================================
# Workbook Format
# =============================================================================
# .apicize JSON 최상위 키 (모두 필수)

SUPPORTED_WORKBOOK_VERSIONS = (1,)
DEFAULT_WORKBOOK_VERSION = 1

WORKBOOK_REQUIRED_KEYS = (
    "version",
    "requests",
    "scenarios",
    "authorizations",
    "certificates",
    "proxies",
    "data",
    "defaults",
)

# requests 외의 워크북 섹션 (manifest.yaml에 그대로 보존)
WORKBOOK_SECTION_KEYS = (
    "scenarios",
    "authorizations",
    "certificates",
    "proxies",
    "data",
)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
EXECUTION_MODES = ("SEQUENTIAL", "CONCURRENT")
BODY_TYPES = ("None", "Text", "JSON", "XML", "Form", "Raw")
VARIABLE_TYPES = ("TEXT", "JSON", "FILE-JSON", "FILE-CSV")

# =============================================================================
# Metadata Block (메타데이터 블록)
# =============================================================================
# 생성 코드 안의 주석 블록:
#   # @apicize-metadata
#   # { ...JSON... }
#   # @apicize-metadata-end

METADATA_START_MARKER = "@apicize-metadata"
METADATA_END_MARKER = "@apicize-metadata-end"
METADATA_COMMENT_PREFIX = "# "
METADATA_JSON_INDENT = 2

# =============================================================================
# Declaration Vocabulary (선언 어휘)
# =============================================================================
# suite = RequestGroup, case = Request

SUITE_VOCABULARY = ("describe", "suite", "context", "group")
CASE_VOCABULARY = ("it", "test", "case", "specify")

# 생성 시 사용하는 대표 이름
SUITE_DECORATOR = "describe"
CASE_DECORATOR = "it"

# case 함수 시그니처
CASE_PARAMETERS = ("context", "response")

# 빈 body 표기
EMPTY_BODY = "pass"

# 데코레이터 config로 노출하는 request 필드 (편집 가능)
CASE_CONFIG_KEYS = ("method", "url", "timeout")

# import 시 config → 레코드 키 매핑 (snake_case 허용)
CONFIG_KEY_ALIASES = {
    "method": "method",
    "url": "url",
    "timeout": "timeout",
    "number_of_redirects": "numberOfRedirects",
    "numberOfRedirects": "numberOfRedirects",
    "runs": "runs",
    "id": "id",
}

# =============================================================================
# Shared Code (선언이 아닌 코드)
# =============================================================================
# 그룹 body / 모듈 최상위의 헬퍼, 훅, import를 노드 레코드에 보존:
#   {"kind": "helper", "position": 0, "code": "HELPER = 42"}
# position = 앞에 선언된 형제 선언 수

SHARED_CODE_KEY = "sharedCode"  # 그룹 body 안
MODULE_CODE_KEY = "moduleCode"  # 유닛 최상위 (첫 최상위 노드에 기록)

SHARED_KIND_HELPER = "helper"
SHARED_KIND_IMPORT = "import"
SHARED_KIND_DOCSTRING = "docstring"

# 훅 이름 → 정규 kind
HOOK_VOCABULARY = {
    "before_each": "before_each",
    "after_each": "after_each",
    "before_all": "before_all",
    "after_all": "after_all",
    "before": "before_all",
    "after": "after_all",
}

# =============================================================================
# Parser Limits
# =============================================================================

DEFAULT_MAX_DEPTH = 32
DEFAULT_INDENT = 4
DEFAULT_MAX_WORKERS = 4

# =============================================================================
# Generated Project Layout (생성 프로젝트 구조)
# =============================================================================
# <output>/
# ├── manifest.yaml
# └── suites/
#     ├── test_00_crud_operations.py
#     └── test_01_image_rotation.py

MANIFEST_FILENAME = "manifest.yaml"
MANIFEST_FORMAT_VERSION = 1
SUITES_DIR = "suites"
UNIT_FILENAME_PREFIX = "test_"
UNIT_FILENAME_SUFFIX = ".py"
RUNTIME_MODULE = "src.runtime"
UNIT_TEMPLATE_NAME = "unit.py.j2"

NODE_KIND_GROUP = "group"
NODE_KIND_REQUEST = "request"

# =============================================================================
# IDs
# =============================================================================

# uuid 또는 "test-request-1" 같은 사람이 붙인 id 모두 허용
ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.:\-]{0,127}$"
RUN_ID_PREFIX = "RUN-"
