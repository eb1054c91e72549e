"""
Splitledger Backend API

A FastAPI backend for shared expenses between friends and groups.
This module sets up the app and mounts routers - all endpoint logic is in routers/.
"""

import logging
import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import models  # registers tables on Base
from database import init_db
from errors import LedgerError
from utils.realtime import RealtimeChannel

# Import routers
from routers import (
    activity,
    auth,
    balances,
    expenses,
    friends,
    groups,
    members,
    notifications,
    realtime,
    settlements,
)


logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables
init_db()

# Initialize FastAPI app
app = FastAPI(
    title="Splitledger API",
    description="API for shared expenses, balances and settlements",
    version="1.0.0"
)

# One channel per process; pushes are best-effort and never persisted
app.state.realtime = RealtimeChannel()


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# CORS middleware
cors_origins = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(friends.router)
app.include_router(groups.router)
app.include_router(members.router)
app.include_router(expenses.router)
app.include_router(settlements.router)
app.include_router(balances.router)
app.include_router(activity.router)
app.include_router(notifications.router)
app.include_router(realtime.router)
