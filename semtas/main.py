import logging
import uvicorn
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from semtas.core.config import get_settings
from semtas.core.logging import setup_logging
from semtas.core.middleware import RequestLoggingMiddleware
from semtas.core.database import initialize_database, db_manager
from semtas.core.events import event_dispatcher
from semtas.core.exceptions import BusinessLogicError, business_exception_to_http
from semtas.services.auditoria import registrar_handlers_auditoria
from semtas.api.solicitacoes import router as solicitacoes_router
from semtas.api.concessoes import router as concessoes_router
from semtas.api.pagamentos import router as pagamentos_router
from semtas.api.agendamentos import router as agendamentos_router
from semtas.api.ops import router as ops_router

settings = get_settings()
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging(level=settings.LOG_LEVEL, log_file=settings.LOG_FILE)

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
        ## SEMTAS - Benefit concession and payment lifecycle

        ### Features
        - **Requests** with analysis workflow; approval creates the concession
        - **Concessions** with suspension, blocking, closing, cancellation and renewal
        - **Installments** with ordered release and payment, overdue sweep and regularization
        - **Append-only history** for requests, concessions and payments
        - **Notification schedules** consumed by an external sender
        - **Audit log** fed from an outbox of status-change facts

        ### Authentication
        Handled upstream. The acting user is passed as `usuario_id` in request bodies.
        """,
        version="1.0.0",
        openapi_tags=[
            {"name": "solicitacoes", "description": "Benefit requests"},
            {"name": "concessoes", "description": "Concession lifecycle and installments"},
            {"name": "pagamentos", "description": "Payment progression"},
            {"name": "agendamentos", "description": "Notification schedules"},
            {"name": "infra", "description": "Infrastructure and health check endpoints"},
        ],
    )

    app.add_middleware(RequestLoggingMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS or ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(solicitacoes_router)
    app.include_router(concessoes_router)
    app.include_router(pagamentos_router)
    app.include_router(agendamentos_router)
    app.include_router(ops_router)

    registrar_handlers_auditoria(event_dispatcher)

    # Healthcheck
    @app.get("/health", tags=["infra"])
    async def health():
        db_health = await db_manager.check_database_health()
        return {"status": "ok", "env": settings.ENV, "database": db_health["status"]}

    @app.exception_handler(BusinessLogicError)
    async def business_exception_handler(request: Request, exc: BusinessLogicError):
        http_exc = business_exception_to_http(exc)
        return JSONResponse(
            status_code=http_exc.status_code,
            content={"detail": http_exc.detail, "path": request.url.path},
        )

    # Global exception handler to log internal server errors
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception", extra={
                "method": request.method,
                "path": request.url.path,
            }
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": f"{exc.__class__.__name__}: {str(exc)}",
                "path": request.url.path,
            },
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(
                "HTTP %s at %s %s: %s",
                exc.status_code,
                request.method,
                request.url.path,
                exc.detail,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "path": request.url.path},
        )

    @app.on_event("startup")
    async def startup_event():
        await initialize_database()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("semtas.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.ENV == "dev")
