from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from futuretek.config import settings
from futuretek.db.database import close_db, init_db
from futuretek.middleware.auth import AuthMiddleware
from futuretek.routes.envelope import register_exception_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await close_db()


app = FastAPI(title="Futuretek LMS", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(AuthMiddleware)
register_exception_handlers(app)

# Import and register routes
from futuretek.routes.assessments import router as assessments_router
from futuretek.routes.assessment_attempts import router as assessment_attempts_router
from futuretek.routes.progress import router as progress_router

app.include_router(assessments_router)
app.include_router(assessment_attempts_router)
app.include_router(progress_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "database": "postgresql" if settings.use_postgres else "sqlite"}
