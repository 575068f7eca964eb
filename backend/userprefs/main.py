import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, status

from .config import get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import get_engine
from .developer_routes import router as developer_router
from .logging_config import configure_logging
from .preference_routes import router as preference_router


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Portal User Preferences Backend", version="0.1.0")
app.include_router(preference_router)
app.include_router(developer_router)

settings_snapshot = get_settings()
logger.info("Backend starting; database configured: %s", bool(settings_snapshot.database_url))
logger.info("Save preferences at logout: %s", settings_snapshot.save_preferences_at_logout)


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz/database")
def database_health() -> Dict[str, Any]:
    try:
        engine = get_engine()
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", "pool": get_pool_snapshot(engine)}
