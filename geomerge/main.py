from fastapi import FastAPI
import logging

from geomerge.api.deps import get_config
from geomerge.api.routes import router

app = FastAPI(title="geo-merge", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    # Fail fast on bad GEOMERGE_* settings instead of on the first request.
    config = get_config()
    logger.info(
        "geo-merge ready: range=%s (%s), win=%s, spawn=%s",
        config.interact_range,
        config.distance_metric.value,
        config.win_value,
        config.spawn_probability,
    )


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "geo-merge", "version": "0.1.0"}
