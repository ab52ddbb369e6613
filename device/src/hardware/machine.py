import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TextIO

from infra.config import HardwareConfig


@dataclass
class MachineState:
    pressure: int = 0
    current: int = 0
    online: bool = False


def default_log_name() -> str:
    stamp = time.strftime("%Y%m%d_%H%M%S")
    return f"run_{stamp}_{secrets.token_hex(4)}.csv"


class MachineHardware:
    """
    Simulated press with two bounded control values and a per-run log.

    Every unit of work waits one simulated second through the injected sleeper
    and appends `second,pressure,current` to the log opened by start().
    """

    def __init__(
        self,
        config: HardwareConfig,
        log_dir: str,
        sleeper,
        name_factory: Callable[[], str] = default_log_name,
    ) -> None:
        self.config = config
        self.log_dir = Path(log_dir)
        self._sleeper = sleeper
        self._name_factory = name_factory
        self.state = MachineState(pressure=config.pressure_min, current=config.current_min)
        self._log_file: Optional[TextIO] = None
        self._log_path: Optional[Path] = None
        self._records_written = 0
        self.last_error: Optional[str] = None

    @staticmethod
    def _clamp(value: int, lo: int, hi: int) -> int:
        return max(lo, min(hi, int(value)))

    def set_pressure(self, value: int) -> None:
        self.state.pressure = self._clamp(value, self.config.pressure_min, self.config.pressure_max)

    def set_current(self, value: int) -> None:
        self.state.current = self._clamp(value, self.config.current_min, self.config.current_max)

    @property
    def pressure(self) -> int:
        return self.state.pressure

    @property
    def current(self) -> int:
        return self.state.current

    @property
    def log_path(self) -> Optional[Path]:
        return self._log_path

    def is_online(self) -> bool:
        return self.state.online

    def start(self) -> bool:
        if self.state.online:
            self.last_error = "Hardware already online"
            return False
        self.last_error = None
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self.last_error = f"Log directory unavailable ({exc})"
            return False

        attempts = max(1, int(self.config.log_name_attempts))
        for attempt in range(1, attempts + 1):
            path = self.log_dir / self._name_factory()
            try:
                # "x" refuses to reuse a name another run already wrote
                self._log_file = open(path, "x", encoding="utf-8", newline="")
            except FileExistsError:
                self.last_error = f"Log name collision on {path.name} (attempt {attempt}/{attempts})"
                continue
            except OSError as exc:
                self.last_error = f"Cannot create log {path.name} ({exc})"
                continue
            self._log_path = path
            self._records_written = 0
            self.state.online = True
            self.last_error = None
            return True
        return False

    def stop(self) -> Optional[Path]:
        self.state.online = False
        self.state.pressure = self.config.pressure_min
        self.state.current = self.config.current_min
        path = self._log_path
        log_file = self._log_file
        try:
            if log_file is not None and not log_file.closed:
                try:
                    log_file.flush()
                finally:
                    log_file.close()
        finally:
            self._log_file = None
            self._log_path = None
        return path

    def perform_unit_of_work(self, pressure: int, current: int, second: int) -> bool:
        if not self.state.online or self._log_file is None:
            self.last_error = "Hardware is offline"
            return False

        self.set_pressure(pressure)
        self.set_current(current)
        try:
            self._sleeper.sleep(self.config.seconds_per_unit)
        except InterruptedError as exc:
            self.last_error = f"Wait interrupted at second {second} ({exc})"
            return False

        line = f"{int(second)},{self.state.pressure},{self.state.current}"
        try:
            if self._records_written:
                self._log_file.write("\n")
            self._log_file.write(line)
            self._log_file.flush()
        except (OSError, ValueError) as exc:
            self.last_error = f"Log write failed at second {second} ({exc})"
            return False
        self._records_written += 1
        return True
