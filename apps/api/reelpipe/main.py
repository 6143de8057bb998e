from fastapi import FastAPI
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from reelpipe.api.ingest import router as ingest_router
from reelpipe.core.logging_config import configure_logging
from reelpipe.db.session import get_db

configure_logging()

app = FastAPI(title="reelpipe API", version="0.1.0")
app.include_router(ingest_router)


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    db_ok: bool


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    db_ok = False
    db: Session | None = None
    try:
        db = next(get_db())
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db_ok = False
    finally:
        if db is not None:
            db.close()

    return HealthResponse(ok=True, service="api", version=app.version, db_ok=db_ok)
