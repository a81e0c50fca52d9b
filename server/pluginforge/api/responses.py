from fastapi.responses import JSONResponse


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def rejected_response(message: str) -> JSONResponse:
    # user-input problems are not transport failures: 200 with success=false
    return JSONResponse({"success": False, "error": message}, status_code=200)
