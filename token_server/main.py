"""
IndieAuth token endpoint service.
Issues, introspects and revokes bearer tokens for codes verified by trusted authorization endpoints.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from token_server.database import SessionLocal, init_db
from token_server.seed import seed_from_env
from token_server.token_endpoint import method_not_allowed_handler
from token_server.token_endpoint import router as token_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and seed the trusted endpoint allow-list from env on startup."""
    init_db()
    db = SessionLocal()
    try:
        seed_from_env(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Token Endpoint", version="0.1.0", lifespan=lifespan)
app.include_router(token_router, tags=["token"])
app.add_exception_handler(StarletteHTTPException, method_not_allowed_handler)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "token_server"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "token_server.main:app",
        host="127.0.0.1",
        port=9100,
        reload=True,
    )
