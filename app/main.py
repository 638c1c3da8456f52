from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from app.routers import campaign, lead
from app.db.session import dispose_engine
from app.db.redis_client import close_redis

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # --- Shutdown: release pooled connections ---
    await dispose_engine()
    await close_redis()


app = FastAPI(
    title="Campaign Lead Allocation",
    version="1.0.0",
    lifespan=lifespan,
)

# --- Register Routers ---
app.include_router(campaign.router)   # /api/v1/campaigns/*
app.include_router(lead.router)       # /api/v1/leads/*


# --- Root health check ---
@app.get("/")
async def root():
    return {"message": "Campaign Lead Allocation API is running"}
