import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from helpdesk.api.errors import install_error_handlers
from helpdesk.api.routes import health, tickets
from helpdesk.core.config import get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.services.datastore import open_datastore
from helpdesk.tickets.service import TicketService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.settings = settings

    datastore = None
    try:
        datastore = await open_datastore(settings)
    except Exception:
        logger.exception("Ticket store %s could not be opened", settings.datastore_type)
        app.state.ticket_service = None
    else:
        service = TicketService(datastore.store)
        app.state.ticket_service = service
        if settings.initialize_positions_on_startup:
            result = await service.initialize_positions()
            logger.info(
                "Position check: %d tickets, %d already positioned, %d assigned",
                result.total,
                result.already_positioned,
                result.updated,
            )

    try:
        yield
    finally:
        if datastore is not None:
            await datastore.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origin.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(health.router)
    app.include_router(tickets.router)
    return app


app = create_app()
