from dotenv import load_dotenv
load_dotenv()
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from app import __version__
from app.api import auth
from app.api import router as api_router
from app.core.config import settings
from app.core.errors import WorkflowError
from app.core.rate_limit import limiter
from app.db.session import SessionLocal
from app.services.conversation_buffer import ConversationBufferManager, SqlConversationStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "invalid_transition": 409,
    "conflict": 409,
    "validation_error": 400,
    "storage_error": 503,
    "security_risk": 422,
    "ai_service_error": 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One buffer manager per process; every request shares its buffers.
    manager = ConversationBufferManager(
        SqlConversationStore(SessionLocal),
        max_messages=settings.CONVERSATION_MAX_MESSAGES,
        flush_threshold=settings.CONVERSATION_FLUSH_THRESHOLD,
    )
    app.state.conversation_manager = manager
    yield
    failures = manager.flush_all()
    if failures:
        logger.error("%d conversations could not be flushed at shutdown", len(failures))


app = FastAPI(
    title="Planning Workflow Backend",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter


# Custom rate limit exceeded handler
@app.exception_handler(RateLimitExceeded)
async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. You have exceeded the maximum number of attempts. Please wait a few minutes before trying again."
        }
    )


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    content = {"detail": exc.message, "error": exc.kind}
    if getattr(exc, "required_roles", None):
        content["required_roles"] = exc.required_roles
    if exc.kind == "invalid_transition":
        content["current_status"] = exc.current_status
        content["target_status"] = exc.target_status
    if exc.kind == "security_risk":
        content["risk_level"] = exc.risk_level
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)


origins = [
    settings.FRONTEND_URL,
    "http://localhost:3001",  # alternative frontend port
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api_router, prefix="/api")
app.include_router(auth.router)  # defines /auth/token


@app.get("/")
def root():
    return {
        "message": "Planning workflow backend running",
        "version": __version__
    }
