"""Domain layer: workbook model, errors and report schemas."""

from .errors import (
    DepthLimitError,
    ErrorCodes,
    MetadataError,
    ParseError,
    StructuralError,
    TranscoderError,
)
from .schemas import RunLog, WarningLog
from .workbook import (
    Node,
    Request,
    RequestBody,
    RequestGroup,
    Scenario,
    Workbook,
    node_from_dict,
)

__all__ = [
    "TranscoderError",
    "StructuralError",
    "ParseError",
    "DepthLimitError",
    "MetadataError",
    "ErrorCodes",
    "RunLog",
    "WarningLog",
    "Node",
    "Request",
    "RequestBody",
    "RequestGroup",
    "Scenario",
    "Workbook",
    "node_from_dict",
]
