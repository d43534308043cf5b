from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import extract
from app.config import settings
from app.extract.errors import AuthenticationError
from app.extract.runtime import ExtractRuntime


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime = ExtractRuntime()
    await runtime.start()
    app.state.runtime = runtime
    yield
    await runtime.close()


app = FastAPI(
    title="URLSift",
    description="Structured data extraction from URLs and site patterns",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(extract.router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Bad Request", "details": jsonable_errors(exc)},
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "urlsift"}
