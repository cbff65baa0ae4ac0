"""
SSO broker: login / register / link-character against EVE SSO, profile session tokens.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sso_broker.audit import router as audit_router
from sso_broker.config import LOG_LEVEL
from sso_broker.database import init_db
from sso_broker.dependencies import close_flows
from sso_broker.keys import get_custom_token_key
from sso_broker.routes import router as auth_router
from sso_broker.well_known import router as well_known_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and load the custom token key on startup; close the SSO client on shutdown."""
    init_db()
    get_custom_token_key()
    yield
    await close_flows()


app = FastAPI(title="SSO Broker", version="1.0.0", lifespan=lifespan)
app.include_router(auth_router, tags=["auth"])
app.include_router(audit_router)
app.include_router(well_known_router, tags=["well-known"])


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "sso_broker"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sso_broker.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
