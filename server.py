#!/usr/bin/env python3
"""
Dev server for the scenario engine API.

Serves the /api simulation, risk, stress and sensitivity routes from
`scenario_engine/` with uvicorn on SCENARIO_ENGINE_HOST:SCENARIO_ENGINE_PORT
(127.0.0.1:8000 by default).
"""

from scenario_engine.main import app, run


if __name__ == "__main__":
    run()
