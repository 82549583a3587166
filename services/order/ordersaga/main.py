import logging

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from ordersaga.version import VERSION
from ordersaga.api import deps, routes
from ordersaga.core.log import setup_logging
from ordersaga.kafka import producer

logger = logging.getLogger(__name__)

setup_logging()

instrumentator = Instrumentator()

app = FastAPI(title="Order Service", version=VERSION)

instrumentator.instrument(app).expose(
    app,
    include_in_schema=False,
    endpoint="/order/metrics",
    should_gzip=True,
)

app.include_router(routes.router, prefix="/order")

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/order/health")
def order_health():
    return {"status": "ok"}

@app.get("/v1/_info")
def info():
    return {"service": "order", "version": VERSION}

@app.on_event("startup")
async def startup_event():
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            logger.debug("route %s %s", sorted(route.methods), route.path)
    deps.email_queue.start()

@app.on_event("shutdown")
async def shutdown_event():
    if not deps.tasks.wait(timeout=5):
        logger.warning("%d detached task(s) still running at shutdown", deps.tasks.pending())
    deps.email_queue.stop()
    producer.close()
