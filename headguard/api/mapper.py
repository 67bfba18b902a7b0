"""
API Mapper
==========

Translates service Results into HTTP payloads and status codes.
The API is a read-only projection of store state; it never caches a
protocol between requests.
"""
from typing import Any, Dict

from fastapi import HTTPException

from ..contracts.base import Error, ErrorCode, Result
from ..core.catalog import StageDefinition
from ..domain.serialization import protocol_to_dict

STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.PROTOCOL_NOT_FOUND: 404,
    ErrorCode.STAGE_NOT_ELIGIBLE: 409,
    ErrorCode.PROTOCOL_ALREADY_CLEARED: 409,
    ErrorCode.CONCURRENT_MODIFICATION: 409,
    ErrorCode.UNKNOWN_STAGE: 500,
    ErrorCode.STORAGE_FAILURE: 503,
}


def error_to_http(error: Error) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 500),
        detail=error.to_dict(),
    )


def unwrap(result: Result) -> Any:
    """Return the value of a successful Result or raise the mapped HTTPException."""
    if result.is_failure:
        raise error_to_http(result.error)
    return result.value


def map_protocol(result: Result) -> Dict[str, Any]:
    return protocol_to_dict(unwrap(result))


def map_stage(definition: StageDefinition) -> Dict[str, Any]:
    return {
        'key': definition.key.value,
        'label': definition.label,
        'description': definition.description,
        'activities': definition.activities,
        'minimumDurationHours': definition.minimum_duration_hours,
        'progressionCriteria': definition.progression_criteria,
    }
