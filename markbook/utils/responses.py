from typing import Any, Iterable

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def send_response(response: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """
    Wrap a payload in the API envelope.

    Plain strings become ``{"message": ...}``; every body carries the HTTP
    status as ``status_code``.
    """
    if not isinstance(response, dict):
        response = {"message": response}
    content = dict(response)
    content["status_code"] = status_code
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def missing_fields(fields: Iterable[str]) -> HTTPException:
    fields = list(fields)
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": f"Missing fields: {', '.join(fields)}", "fields": fields},
    )


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")
