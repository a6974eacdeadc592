import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scenario_engine.api.routes import router as api_router
from scenario_engine.config import SERVER_HOST, SERVER_PORT
from scenario_engine.utils.json_safety import SafeJSONResponse


def create_app() -> FastAPI:
    app = FastAPI(
        title="Scenario Simulation Engine",
        default_response_class=SafeJSONResponse,
    )

    # ── CORS (kept for local dev convenience) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[f"http://127.0.0.1:{SERVER_PORT}", f"http://localhost:{SERVER_PORT}"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── API routes ──
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


def run():
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
