from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Custom validation exception handler with better error messages"""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        message = error["msg"]
        error_type = error.get("type", "validation_error")

        # Customize error messages for common validation errors
        if error_type == "missing":
            message = f"Field '{field}' is required"
        elif error_type in ("float_parsing", "float_type"):
            message = f"Expected numeric value for field '{field}', got {error.get('input', 'invalid type')!r}"
        elif error_type == "greater_than":
            message = f"Field '{field}' must be greater than {error.get('ctx', {}).get('gt', 0)}"

        errors.append({
            "field": field,
            "message": message,
            "type": error_type
        })

    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "message": "Validation failed",
                "errors": errors
            }
        }
    )
