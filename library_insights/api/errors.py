"""JSON error bodies shared by the routers (``{"error": ..., "detail": ...}``)."""

from typing import Optional

from fastapi.responses import JSONResponse


def error_response(status_code: int, error: str, detail: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if detail is not None:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)
