from fastapi.responses import JSONResponse

from backend.utils.errors import AppError


def success_response(data=None, status=200, **extra):
    return JSONResponse(
        status_code=status,
        content={
            "data": data if data is not None else [],
            **extra,
        }
    )


def error_response(error, status=400, message=None, details=None, headers=None):
    content = {"error": error}
    if message is not None:
        content["message"] = message
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status, content=content, headers=headers)


def app_error_response(exc: AppError, headers=None):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
