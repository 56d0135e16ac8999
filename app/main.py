from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from loguru import logger
from sqlmodel import Session

from app.api.v1 import index
from app.api.v1 import auth
from app.api.v1 import certificate
from app.api.v1 import admin
from app.api.v1 import organization


from app.core.config import settings
from app.core.exceptions import StoreFailure, store_failure_handler
from app.core.logging import setup_logging
from app.db.core import create_db_and_tables, engine
from app.services.certificate import CertificateService

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Schema + default templates are a startup step, never a read-path side effect
    create_db_and_tables()
    if settings.seed_on_startup:
        with Session(engine) as session:
            if CertificateService(session).ensure_seeded():
                logger.info("Seeded default certificate templates on startup")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Middlewares
origins = []

if settings.allowed_hosts:
    origins = settings.allowed_hosts.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(StoreFailure, store_failure_handler)

# Register routes
app.include_router(index.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(certificate.router,
                   prefix="/api/v1/certificates", tags=["Certificates"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(organization.router,
                   prefix="/api/v1/organizations", tags=["Organizations"])

# Static files serving (QR codes)
app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=None,
    )
