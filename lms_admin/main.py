import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from lms_admin.api.activity import router as activity_router
from lms_admin.api.admin.audit import router as audit_router
from lms_admin.api.admin.users import router as users_router
from lms_admin.api.auth import router as auth_router
from lms_admin.core.config import get_settings
from lms_admin.core.errors import LMSAdminError, http_error_handler, lms_admin_error_handler
from lms_admin.jobs.retention import retention_loop

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    stop_event = asyncio.Event()
    task = None
    if settings.retention_enabled:
        logger.info("Starting retention loop every %ss", settings.retention_interval_seconds)
        task = asyncio.create_task(retention_loop(settings.retention_interval_seconds, stop_event))
    yield
    stop_event.set()
    if task is not None:
        await task


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(LMSAdminError, lms_admin_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(audit_router)
app.include_router(activity_router)


@app.get("/")
def root():
    return {"ok": True, "docs": "/docs"}
