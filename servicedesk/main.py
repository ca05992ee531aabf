from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from servicedesk.api.routes import ping, tickets, users
from servicedesk.core.config import get_settings
from servicedesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from servicedesk.db import create_engine, create_session_factory, ensure_schema
from servicedesk.tickets.audit import AuditRecorder
from servicedesk.tickets.lifecycle import TicketLifecycle
from servicedesk.tickets.repository import TicketRepository
from servicedesk.tickets.service import TicketService
from servicedesk.tickets.sweeper import SLABreachScheduler, SLABreachSweeper
from servicedesk.tickets.triage import GeminiTriageClassifier, TriageAdapter
from servicedesk.users.repository import UserRepository
from servicedesk.users.service import UserService


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.ticket_service = None
    app.state.user_service = None

    classifier = GeminiTriageClassifier(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
    )
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; tickets will use default routing")

    db_engine = None
    scheduler = None
    try:
        db_engine = create_engine(settings.database_url)
        session_factory = create_session_factory(db_engine)
        await ensure_schema(db_engine)

        ticket_repository = TicketRepository(session_factory)
        user_service = UserService(UserRepository(session_factory))
        recorder = AuditRecorder(ticket_repository)
        app.state.user_service = user_service
        app.state.ticket_service = TicketService(
            ticket_repository,
            user_service,
            triage=TriageAdapter(classifier, timeout=settings.triage_timeout_seconds),
            recorder=recorder,
            lifecycle=TicketLifecycle(recorder),
        )

        scheduler = SLABreachScheduler(SLABreachSweeper(ticket_repository))
        scheduler.start()
    except Exception:  # pragma: no cover - service initialisation best effort
        logger.exception("Service desk initialisation failed; ticket endpoints will answer 503")
        app.state.ticket_service = None
        app.state.user_service = None
        if scheduler is not None:
            await scheduler.stop()
            scheduler = None
        if db_engine is not None:
            await db_engine.dispose()
            db_engine = None

    app.state.db_engine = db_engine
    app.state.sla_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.stop()
        await classifier.aclose()
        if db_engine is not None:
            await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(ping.router)
    app.include_router(users.router)
    app.include_router(tickets.router)
    return app


app = create_app()
