"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from bulk_reports.config import settings
from bulk_reports.routes import reports
from bulk_reports.services.orchestrator import ReportOrchestrator
from bulk_reports.services.transport import HttpTransport
from bulk_reports.worker import ReportWorker

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Bulk Reports",
    description="Marketplace bulk report retrieval service",
    version="0.1.0",
)

# Include routers
app.include_router(reports.router)


@app.on_event("startup")
def startup_event():
    """Wire the transport, orchestrator and worker when the app starts."""
    logger.info("Starting application...")

    transport = HttpTransport(
        base_url=settings.SP_API_BASE_URL,
        access_token=settings.SP_API_ACCESS_TOKEN,
        timeout=settings.HTTP_TIMEOUT,
        max_attempts=settings.HTTP_MAX_RETRIES,
    )
    orchestrator = ReportOrchestrator(transport)

    app.state.transport = transport
    app.state.orchestrator = orchestrator
    app.state.worker = ReportWorker(orchestrator)
    logger.info(f"Reports API at {settings.SP_API_BASE_URL} (version {settings.REPORTS_API_VERSION})")


@app.on_event("shutdown")
def shutdown_event():
    """Stop background runs and release HTTP connections."""
    logger.info("Shutting down application...")

    worker = getattr(app.state, "worker", None)
    if worker is not None:
        worker.stop(timeout=10)
        logger.info("Background runs stopped")

    transport = getattr(app.state, "transport", None)
    if transport is not None:
        transport.close()


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
