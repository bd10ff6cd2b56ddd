"""FastAPI application entrypoint.

Wires logging, CORS, the envelope middleware and the `/api` routers
together, creates the tables and (unless `SEED_ON_STARTUP=false`)
seeds an empty database with the starting branches and admin user.

Run locally with:

    uvicorn onlinebank.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from . import middleware
from .config import settings
from .database import create_db_and_tables, engine
from .logging_config import setup_logging
from .routers import api_router
from .seed import seed_database

setup_logging()
logger = logging.getLogger("onlinebank.api")

app = FastAPI(
    title="Online Bank Simulation API",
    description="Accounts, branches, transactions and OTP verification for a simulated bank",
    version="1.0.0",
)

middleware.install(app)

# added last so it sits outermost and also answers preflight requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[middleware.CORRELATION_HEADER, middleware.RESPONSE_TIME_HEADER],
)

app.include_router(api_router)

create_db_and_tables()
if settings.SEED_ON_STARTUP:
    with Session(engine) as session:
        seed_database(session)
logger.info("Online Bank API started (env=%s)", settings.ENV)


@app.get("/health")
def health():
    return {"status": "healthy", "service": "onlinebank", "version": app.version}
