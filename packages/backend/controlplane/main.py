import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from controlplane.api.v1.auth import router as auth_router
from controlplane.api.v1.licensing import router as licensing_router
from controlplane.api.v1.org import router as org_router
from controlplane.core.logging_config import configure_logging
from controlplane.core.problems import problem_response, problem_type
from controlplane.core.settings import Settings, settings
from controlplane.db import model_registry as _model_registry  # noqa: F401
from controlplane.security.errors import ConfigurationError


logger = logging.getLogger(__name__)


def check_key_configuration(config: Settings) -> None:
    missing = [
        name
        for name, value in (
            ("JWT_PRIVATE_KEY", config.normalized_jwt_private_key),
            ("JWT_PUBLIC_KEY", config.normalized_jwt_public_key),
            ("LICENSE_PUBLIC_KEY", config.normalized_license_public_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"missing key material: {', '.join(missing)}")
    if not config.normalized_license_private_key:
        logger.warning("LICENSE_PRIVATE_KEY is not set; license generation is disabled")


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    check_key_configuration(settings)
    yield


app = FastAPI(title="Hosting Control Panel API", lifespan=lifespan)
app.include_router(auth_router)
app.include_router(licensing_router)
app.include_router(org_router)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(_: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="The server is not configured to perform this operation.",
        type_=problem_type("configuration-error"),
    )


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("controlplane.main:app", host=settings.app_host, port=settings.app_port, reload=True)
