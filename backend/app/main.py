from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
from app.api.errors import register_exception_handlers
from app.api.rest import build_model_router
from app.logging_config import logger
from app.config import settings
from app.models import init_db
from app.models.definitions import build_registry
from app.services.registry import ModelRegistry

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.APP_NAME} started with models: {[d.name for d in app.state.registry.definitions]}")
    yield

def create_app(registry: Optional[ModelRegistry] = None) -> FastAPI:
    """アプリケーションを生成する。公開モデルごとにRESTルートを登録する"""
    registry = registry or build_registry()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.registry = registry

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for definition in registry.definitions:
        if definition.public:
            app.include_router(build_model_router(definition, registry.graph), prefix=settings.API_PREFIX)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app

app = create_app()
