from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from hr_approval.api.v1.approval_lines.router import router as approval_lines_router
from hr_approval.api.v1.approval_processes.router import router as approval_processes_router
from hr_approval.api.v1.contracts.router import router as contracts_router
from hr_approval.api.v1.leaves.router import router as leaves_router
from hr_approval.api.v1.work_schedules.router import router as work_schedules_router
from hr_approval.core.config import settings
from hr_approval.core.logging_config import LogContext, configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level, json_output=settings.log_json)
    app = FastAPI(title="HR Approval Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_log_context(request: Request, call_next):
        LogContext.clear()
        LogContext.bind(request_path=request.url.path)
        return await call_next(request)

    # Routers
    app.include_router(leaves_router)
    app.include_router(approval_lines_router)
    app.include_router(approval_processes_router)
    app.include_router(contracts_router)
    app.include_router(work_schedules_router)

    return app


app = create_app()
