import logging

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from photobooth_video.api.routes import (
    generic_exception_handler,
    http_exception_handler,
    photobooth_video_exception_handler,
    router,
    validation_exception_handler,
)
from photobooth_video.config import get_settings
from photobooth_video.utils.errors import PhotoboothVideoError

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Photobooth Video API")

# Video routes
app.include_router(router)

# Error handlers
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(PhotoboothVideoError, photobooth_video_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# CORS (kiosk front end is served from another origin)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("photobooth_video.main:app", host="0.0.0.0", port=3000, reload=True)
