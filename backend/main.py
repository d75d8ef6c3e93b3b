import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool

from api import ClinicApi
from database import connect
from errors import RepositoryError
from logging_config import setup_logging
from repositories import Repositories

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD"]


def create_app(store=None) -> FastAPI:
    """Build the HTTP app over ``store``; the app closes the store on shutdown."""
    store = store if store is not None else connect()
    repositories = Repositories(store)

    if os.getenv("SEED_DEFAULT_USERS", "false").lower() == "true":
        try:
            repositories.users.seed_defaults()
        except RepositoryError as e:
            logger.warning(f"Could not seed default users: {e}")

    if os.getenv("SEED_SAMPLE_DATA", "false").lower() == "true":
        try:
            repositories.seed_sample_data()
        except RepositoryError as e:
            logger.warning(f"Could not seed sample data: {e}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"CareHub API starting up (database: {store.name})")
        yield
        logger.info("CareHub API shutting down...")
        store.close()

    app = FastAPI(title="CareHub API", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.state.api = ClinicApi(repositories)

    @app.api_route("/{path:path}", methods=METHODS)
    async def dispatch(request: Request):
        start = time.time()
        body = await request.body()
        encoded = await run_in_threadpool(
            request.app.state.api.handle,
            request.method,
            request.url.path,
            body,
            dict(request.query_params),
        )
        logger.info(
            f"{request.method} {request.url.path} - Status: {encoded.status} - Time: {time.time() - start:.3f}s",
            extra={"method": request.method, "path": request.url.path, "status": encoded.status},
        )
        return Response(content=encoded.body, status_code=encoded.status, headers=encoded.headers)

    return app


def parse_port(args: List[str], default: int = DEFAULT_PORT) -> int:
    raw: Optional[str] = args[0] if args else os.getenv("PORT")
    if raw is None:
        return default
    try:
        port = int(raw)
    except ValueError:
        logger.warning(f"Invalid port number: {raw}. Using default port {default}.")
        return default
    if not 0 < port < 65536:
        logger.warning(f"Port {port} out of range. Using default port {default}.")
        return default
    return port


def main(argv: Optional[List[str]] = None):
    import uvicorn

    setup_logging(
        use_json=os.getenv("JSON_LOGS", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
    argv = sys.argv[1:] if argv is None else argv
    port = parse_port(argv)
    logger.info(f"Starting CareHub REST API on port {port}")
    uvicorn.run(create_app(), host="0.0.0.0", port=port, log_config=None)


if __name__ == "__main__":
    main()
