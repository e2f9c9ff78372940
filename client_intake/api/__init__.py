"""
Client Intake API Application Factory
"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .admin import router as admin_router
from .banking import router as banking_router
from .exception_handlers import setup_exception_handlers
from .registrations import router as registrations_router
from .sessions import router as sessions_router
from .. import __version__
from ..config import get_config


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Client Intake API",
        description="Client registration intake with encrypted banking data",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_config().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    # Include routers
    app.include_router(sessions_router, prefix="/auth", tags=["Authentication"])
    app.include_router(banking_router, prefix="/banking-data", tags=["Banking Data"])
    app.include_router(registrations_router, prefix="/registrations", tags=["Registrations"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "client_intake_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Client Intake API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": "/auth",
                "banking-data": "/banking-data",
                "registrations": "/registrations",
                "admin": "/admin",
            }
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "client_intake.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
