import logging

from fastapi import FastAPI

from planit.api.contracts import router as contracts_router
from planit.errors import register_error_handlers
from planit.logging import configure_logging

app = FastAPI(title="PlanIt Contracts API")
logger = logging.getLogger(__name__)
configure_logging()
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(contracts_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
