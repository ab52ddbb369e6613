import argparse
import sys
from pathlib import Path

import uvicorn

# Ensure the src package is first on sys.path so we import the updated modules
SRC_DIR = Path(__file__).resolve().parent
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.controller import MachineController
from infra.config import load_config, DeviceConfig
from interfaces.api import create_app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fictitious manufacturing machine backend")
    parser.add_argument(
        "--config",
        type=str,
        default="config/station.yaml",
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run a manual cycle and every bundled recipe, print results and exit",
    )
    return parser.parse_args()


def run_demo(controller: MachineController) -> None:
    print(controller.set_control_values(100, 100))
    print(controller.run_for_seconds(10))
    for name in controller.list_recipes():
        print(f"{name}: {controller.run_recipe(name)}")


def main() -> None:
    args = parse_args()

    cfg: DeviceConfig = load_config(args.config)
    controller = MachineController(cfg)

    if args.demo:
        run_demo(controller)
        return

    app = create_app(config=cfg, controller=controller)

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=cfg.network.api_port,
    )


if __name__ == "__main__":
    main()
