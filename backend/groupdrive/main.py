import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from groupdrive.core.config import settings
from groupdrive.core.database import init_db
from groupdrive.core.exceptions import register_exception_handlers
from groupdrive.repositories.blob_repository import get_blob_storage
from groupdrive.routers import (
    auth_router,
    file_router,
    group_router,
    public_router,
    share_router,
    user_router,
)
from groupdrive.services.public_link_service import build_public_link_issuer
from groupdrive.services.upload_service import build_upload_coordinator

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(), format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # Process-wide stores, shared by every request
    api_app.state.upload_coordinator = build_upload_coordinator(get_blob_storage())
    api_app.state.public_link_issuer = build_public_link_issuer()
    logger.info("%s started (storage: %s)", settings.PROJECT_NAME, settings.STORAGE_BACKEND)
    yield
    api_app.state.upload_coordinator.purge_expired()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Personal and group file storage with chunked uploads and sharing",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Everything lives under /api
api_app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
)
register_exception_handlers(app)
register_exception_handlers(api_app)

api_app.include_router(auth_router.router)
api_app.include_router(user_router.router)
api_app.include_router(user_router.admin_router)
api_app.include_router(group_router.router)
api_app.include_router(file_router.router)
api_app.include_router(share_router.router)
api_app.include_router(public_router.router)

app.mount("/api", api_app)


if __name__ == "__main__":
    uvicorn.run("groupdrive.main:app", host="0.0.0.0", port=8000, reload=True)
