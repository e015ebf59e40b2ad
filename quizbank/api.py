from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from quizbank.routes.admin_routes import admin_routes
from quizbank.routes.auth_routes import auth_routes
from quizbank.routes.catalog_routes import catalog_routes
from quizbank.routes.quiz_routes import quiz_routes
from quizbank.routes.stats_routes import stats_routes
from quizbank.routes.user_routes import user_routes
from quizbank.config import create_db
from quizbank.services.errors import QuizError
from quizbank.utils.logger import configure_logging, set_request_id, clear_request_id
from fastapi import Request
from starlette.responses import Response, JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

app = FastAPI(title="quizbank")
logger = configure_logging()
create_db()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = set_request_id(request.headers.get("x-request-id"))
    try:
        logger.info("request start method=%s path=%s client=%s", request.method, request.url.path, request.client)
        response: Response = await call_next(request)
        logger.info("request end status=%s method=%s path=%s", response.status_code, request.method, request.url.path)
        response.headers["x-request-id"] = rid
        return response
    except Exception:
        logger.exception("request error method=%s path=%s", request.method, request.url.path)
        raise
    finally:
        clear_request_id()


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError) -> JSONResponse:
    # Refusals (not enrolled, all mastered, already submitted) are normal traffic.
    if exc.expected:
        logger.info("quiz refused code=%s status=%s path=%s", exc.code, exc.status_code, request.url.path)
    else:
        logger.error("quiz error code=%s status=%s path=%s", exc.code, exc.status_code, request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.exception("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
    else:
        logger.warning("http error status=%s method=%s path=%s detail=\n%s", exc.status_code, request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("validation error method=%s path=%s errors=\n%s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Never leak internal exception details to clients.
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


@app.get("/")
def read_root():
    return {"message": "quizbank is healthy"}

app.include_router(auth_routes, prefix="/auth")
app.include_router(catalog_routes, prefix="/catalog")
app.include_router(quiz_routes, prefix="/quiz")
app.include_router(stats_routes, prefix="/stats")
app.include_router(user_routes)
app.include_router(admin_routes, prefix="/admin")

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
