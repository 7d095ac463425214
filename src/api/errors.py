"""
Translate repository `ResultError`s into JSON HTTP errors.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException

from src.api.result import ResultError

_STATUS_BY_ERROR = {
    "missing_map": 404,
    "missing_user": 404,
    "forbidden": 403,
    "invalid_login": 401,
    "invalid_password": 400,
    "username_taken": 400,
    "email_taken": 400,
    "db_error": 500,
}


# PUBLIC_INTERFACE
def raise_result_error(result: ResultError) -> NoReturn:
    """
    Raise an HTTPException for a failed result.

    The status comes from the first descriptor; every descriptor is returned
    under `errors`.
    """
    first = result.errors[0]
    raise HTTPException(
        status_code=_STATUS_BY_ERROR.get(first.type, 400),
        detail={
            "error": first.type,
            "message": first.message,
            "errors": [{"type": e.type, "message": e.message} for e in result.errors],
        },
    )
