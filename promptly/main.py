from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from .routes import router
from .core import redis_startup, init_metrics, shutdown_connections
from .exceptions import InvalidInput, StorageError, VisionError
from .storage import STORAGE_BACKEND, UPLOAD_DIR, UploadedFiles
import logging
from pythonjsonlogger import jsonlogger

# setup structured logging
logger = logging.getLogger('promptly')
handler = logging.StreamHandler()
formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.setLevel(logging.INFO)

app = FastAPI(title="Promptly API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(router)

if STORAGE_BACKEND == 'local':
    app.mount('/storage', UploadedFiles(directory=UPLOAD_DIR, check_dir=False), name='storage')


@app.get('/healthz')
async def healthz():
    return {'status': 'ok'}


@app.middleware('http')
async def log_requests(request: Request, call_next):
    logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
    response = await call_next(request)
    logger.info({
        'msg': 'request_end',
        'status': response.status_code,
        'user_id': getattr(request.state, 'user_id', None),
    })
    return response


def _field_name(loc) -> str:
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return '.'.join(parts)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = _field_name(error.get('loc', ()))
        if error.get('type') == 'missing':
            message = f"The {field} field is required."
        else:
            message = error.get('msg', 'Invalid value.')
        errors.setdefault(field, []).append(message)
    return JSONResponse(status_code=422, content={'message': InvalidInput(errors).message, 'errors': errors})


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(status_code=422, content={'message': exc.message, 'errors': exc.errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={'message': exc.detail}, headers=getattr(exc, 'headers', None))


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error({'msg': 'storage_error', 'path': request.url.path, 'error': str(exc)})
    return JSONResponse(status_code=500, content={'message': 'Failed to store the uploaded image.'})


@app.exception_handler(VisionError)
async def vision_error_handler(request: Request, exc: VisionError):
    logger.error({'msg': 'vision_error', 'path': request.url.path, 'error': str(exc), 'upstream_status': exc.status_code})
    return JSONResponse(status_code=500, content={'message': f'Failed to generate a prompt: {exc}'})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception({'msg': 'unhandled_error', 'path': request.url.path})
    return JSONResponse(status_code=500, content={'message': 'Server Error'})


@app.on_event("startup")
async def startup():
    # Best-effort init, don't block app from starting if a dependency fails
    try:
        await redis_startup()
    except Exception as e:
        logger.warning({'msg': 'redis_start_failed', 'error': str(e)})
    try:
        init_metrics()
    except Exception as e:
        logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})


@app.on_event("shutdown")
async def shutdown():
    await shutdown_connections()
