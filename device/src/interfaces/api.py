from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from domain.controller import MachineController
from domain.models import DeviceStatus
from infra.config import DeviceConfig


class ControlValues(BaseModel):
    pressure: int
    current: int


class ManualRun(BaseModel):
    seconds: int = Field(..., ge=0, description="Simulated seconds to run")


def create_app(config: DeviceConfig, controller: Optional[MachineController] = None):
    if controller is None:
        controller = MachineController(config)

    app = FastAPI()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _guarded(fn, *args):
        try:
            return fn(*args)
        except RuntimeError as exc:
            if "already in progress" in str(exc).lower() or "blocked" in str(exc).lower():
                raise HTTPException(status_code=409, detail=str(exc))
            raise HTTPException(status_code=400, detail=str(exc))
        except Exception as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @app.get("/status", response_model=DeviceStatus)
    def status():
        return controller.get_status()

    @app.get("/control")
    def get_control():
        return {"message": controller.get_control_values()}

    @app.post("/control")
    def set_control(payload: ControlValues):
        return {"message": _guarded(controller.set_control_values, payload.pressure, payload.current)}

    @app.post("/command/run")
    def run(payload: ManualRun):
        return {"message": _guarded(controller.run_for_seconds, payload.seconds)}

    @app.post("/command/stop")
    def stop():
        controller.stop_run()
        return {"ok": True}

    @app.get("/recipes")
    def recipes():
        return {"recipes": controller.list_recipes()}

    @app.post("/recipes/{name}/run")
    def run_recipe(name: str):
        if name not in controller.list_recipes():
            raise HTTPException(status_code=404, detail=f"Unknown recipe '{name}'")
        return {"message": _guarded(controller.run_recipe, name)}

    @app.post("/logs/clear")
    def clear_logs():
        controller.clear_logs()
        return {"ok": True}

    return app
