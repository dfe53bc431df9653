"""Translate failed Results into HTTP errors"""
from fastapi import HTTPException

from domain.errors import ErrorType, Result

STATUS_CODES = {
    ErrorType.VALIDATION: 400,
    ErrorType.UNAUTHORIZED: 401,
    ErrorType.FORBIDDEN: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONFLICT: 409,
    ErrorType.FAILURE: 502,
}


def raise_for_failure(result: Result) -> None:
    """Raise HTTPException for the first error of a failed result"""
    if result.is_success:
        return
    error = result.error
    raise HTTPException(
        status_code=STATUS_CODES.get(error.type, 400),
        detail={"code": error.code, "message": error.description}
    )


def unwrap(result: Result):
    raise_for_failure(result)
    return result.value
