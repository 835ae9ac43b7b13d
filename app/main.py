from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.deps import get_snapshot_refresher
from app.api.routers.tvl import router as tvl_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    refresher = get_snapshot_refresher()
    refresher.start()
    try:
        yield
    finally:
        refresher.stop()


app = FastAPI(title="TVL Snapshot API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(tvl_router)
