import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from filedrive.core.dependencies import get_current_user_id
from filedrive.core.errors import FileDriveError
from filedrive.core.logging_config import setup_logging
from filedrive.models.database import Base, engine
from filedrive.routers import admin, auth, files, users

setup_logging()
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="filedrive", version="1.0.0")


@app.exception_handler(FileDriveError)
def handle_filedrive_error(request: Request, exc: FileDriveError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(SQLAlchemyError)
def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# include our routers
app.include_router(auth.router)
app.include_router(files.router)
app.include_router(users.router)
app.include_router(admin.router)


@app.get("/")
def home(request: Request):
    return {"name": "filedrive", "authenticated": get_current_user_id(request) is not None}


@app.get("/api/health")
def health():
    return {"status": "ok"}
