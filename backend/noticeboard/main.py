# backend/noticeboard/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .database import engine
from . import models
from .api import documents, notices, users
from .exceptions import PortalError
from .utils.logging import api_logger

# Create all tables on startup
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Noticeboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify your actual frontend URL
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.include_router(documents.router)
app.include_router(notices.router)
app.include_router(users.router)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    api_logger.info("Request rejected", extra={
        "path": request.url.path,
        "error_code": exc.error_code,
        "status_code": exc.status_code
    })
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
async def root():
    return {"message": "Noticeboard API is running"}
