from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from rentdesk.api import documents
from rentdesk.config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Rentdesk Documents",
    description="Printable documents of the equipment rental console",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.public_origin],
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(documents.router, prefix="/api", tags=["Documents"])


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "backend": settings.base_url
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
