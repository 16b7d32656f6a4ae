import logging
from contextlib import asynccontextmanager

import typer
import uvicorn
from fastapi import FastAPI

from activity_controller.agents.build_controller import BuildController
from activity_controller.api.status import router as status_router
from activity_controller.core.config import BUILD_CONTROLLER_NAMESPACE, HEALTH_PORT, LOG_DIR
from activity_controller.services.crd import register_pipeline_activity_crd
from activity_controller.services.kube_client import create_clients, current_namespace
from activity_controller.utils.logging_config import setup_logging

logger = logging.getLogger("main")

cli = typer.Typer(help="Runs the build controller", add_completion=False)


def create_app(controller: BuildController) -> FastAPI:
    """Health/status app whose lifespan owns the controller's watch loop."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.controller = controller
        controller.start()
        try:
            yield
        finally:
            controller.stop()

    app = FastAPI(title="Build Activity Controller", lifespan=lifespan)

    # Health endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(status_router, tags=["Controller"])
    return app


@cli.command()
def build(
    namespace: str = typer.Option(
        "", "--namespace", "-n",
        help="The namespace to watch or defaults to the current namespace",
    ),
    port: int = typer.Option(HEALTH_PORT, "--port", help="Port for /health and /status"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Watch Knative build pods and maintain their PipelineActivity resources."""
    setup_logging(level=logging.DEBUG if verbose else logging.INFO, log_dir=LOG_DIR or None)

    clients = create_clients()
    register_pipeline_activity_crd(clients.apiextensions)

    ns = namespace or current_namespace(BUILD_CONTROLLER_NAMESPACE)
    controller = BuildController.from_clients(clients, ns)

    logger.info("Starting build controller for namespace %s on port %d", ns, port)
    uvicorn.run(create_app(controller), host="0.0.0.0", port=port, log_config=None)


if __name__ == "__main__":
    cli()
