from fastapi import FastAPI

from rdsync.config import Settings, settings as default_settings
from rdsync.errors import setup_error_handling
from rdsync.logging_config import setup_logging
from rdsync.routes.demandas import router as demandas_router
from rdsync.routes.health import router as health_router
from rdsync.routes.rd_organizations import router as rd_organizations_router
from rdsync.routes.rd_pipeline import router as rd_pipeline_router
from rdsync.routes.sinistros import router as sinistros_router
from rdsync.routes.webhooks import router as webhooks_router

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level, json_format=settings.log_json)

    app = FastAPI(title="rdsync", version="0.1.0")
    # validated once here; handlers read it through get_settings
    app.state.settings = settings

    setup_error_handling(app)
    app.include_router(health_router)
    app.include_router(webhooks_router)
    app.include_router(sinistros_router)
    app.include_router(rd_pipeline_router)
    app.include_router(rd_organizations_router)
    app.include_router(demandas_router)
    return app

app = create_app()
