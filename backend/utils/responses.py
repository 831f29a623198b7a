from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder


def success_response(data=None, message="OK", status=200):
    return JSONResponse(
        status_code=status,
        content=jsonable_encoder({
            "ok": True,
            "data": data if data is not None else {},
            "error": None,
            "message": message,
        })
    )


def error_response(error_code, status=400, message="An error occurred", data=None):
    return JSONResponse(
        status_code=status,
        content=jsonable_encoder({
            "ok": False,
            "data": data if data is not None else {},
            "error": error_code,
            "message": message,
        })
    )
