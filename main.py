import sys
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from routes.lesson_routes import router as lesson_router
from services.bootstrap import LessonServices, create_services
from utils.exceptions import LearnzaError

# Configure logging
logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('app.log')
    ]
)

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.services = await create_services()
    logger.info("Learnza tutor API started")
    yield


async def learnza_exception_handler(request: Request, exc: LearnzaError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: [{exc.error_code}] {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.message,
            "error": exc.error_code,
        },
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid request body",
            "error": "INVALID_REQUEST",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def create_app(services: Optional[LessonServices] = None) -> FastAPI:
    """Build the API. Pass `services` to skip connecting to Supabase and the model provider."""
    app = FastAPI(
        title="Learnza Tutor API",
        description="Lesson generation and AI tutoring",
        lifespan=None if services is not None else lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_exception_handler(LearnzaError, learnza_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(lesson_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
