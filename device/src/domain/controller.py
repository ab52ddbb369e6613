import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from domain.models import ControlSettings, DeviceStatus, RecipeKind
from domain.recipes import (
    HardwareStartError,
    InvalidRecipeError,
    RunAbortedError,
    Schedule,
    constant_current,
    constant_pressure,
    ramp,
    read_descriptor,
)
from domain.sleeper import InterruptibleSleeper
from domain.validation import read_records, records_match
from hardware.machine import MachineHardware
from infra.config import DeviceConfig

GOOD_PART = "Good part. Log file: {}"
BAD_PART = "Bad part. Log file: {}"
START_FAILED = "Hardware failed to start"


@dataclass
class ControllerState:
    state: str = "IDLE"  # IDLE, RUNNING, ERROR
    current_run: Optional[str] = None
    last_error: Optional[str] = None
    last_log: Optional[str] = None


class MachineController:
    def __init__(
        self,
        config: DeviceConfig,
        hardware: Optional[MachineHardware] = None,
        sleeper=None,
    ) -> None:
        self.config = config
        self._stop_event = threading.Event()
        if hardware is None:
            if sleeper is None:
                sleeper = InterruptibleSleeper(self._stop_event.is_set)
            hardware = MachineHardware(config.hardware, config.storage.log_dir, sleeper)
        self.hardware = hardware

        self.state = ControllerState()
        self._state_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._log_lock = threading.Lock()
        self._log_buffer: list[str] = []

        self._log("Machine control ready.")

    # ---------------------------------------------------
    # STATUS
    # ---------------------------------------------------
    def get_status(self) -> DeviceStatus:
        with self._log_lock:
            logs = list(self._log_buffer)
        with self._state_lock:
            return DeviceStatus(
                device_id=self.config.device_id,
                state=self.state.state,
                current_run=self.state.current_run,
                online=self.hardware.is_online(),
                pressure=self.hardware.pressure,
                current=self.hardware.current,
                last_error=self.state.last_error,
                last_log=self.state.last_log,
                logs=logs,
            )

    # ---------------------------------------------------
    # MANUAL MODE
    # ---------------------------------------------------
    def get_control_values(self) -> str:
        return f"Pressure: {self.hardware.pressure}, Current: {self.hardware.current}"

    def set_control_values(self, pressure: int, current: int) -> str:
        self._ensure_manual_allowed()
        self.hardware.set_pressure(pressure)
        self.hardware.set_current(current)
        self._log(f"[Manual] Control values set to {self.get_control_values()}")
        return self.get_control_values()

    def run_for_seconds(self, seconds: int) -> str:
        """Run at the present control values for `seconds` units. No validation."""
        settings = ControlSettings(
            pressure=self.hardware.pressure,
            current=self.hardware.current,
            seconds=seconds,
        )
        self._claim_run("Manual")
        try:
            path = self._execute(
                "Manual",
                lambda _second: (settings.pressure, settings.current),
                range(settings.seconds),
            )
        except HardwareStartError:
            self._finish_run(START_FAILED)
            return START_FAILED
        except RunAbortedError as exc:
            self._finish_run(str(exc), exc.log_path)
            return BAD_PART.format(_name(exc.log_path))
        except Exception:
            self._finish_run("Manual run failed")
            raise
        self._finish_run(None, path)
        return GOOD_PART.format(_name(path))

    # ---------------------------------------------------
    # RECIPE MODES
    # ---------------------------------------------------
    def run_constant_pressure(self, seconds: int, part_size: int) -> Path:
        return self._run_mode_exclusive(RecipeKind.CONSTANT_PRESSURE, seconds, part_size)

    def run_constant_current(self, seconds: int, part_size: int) -> Path:
        return self._run_mode_exclusive(RecipeKind.CONSTANT_CURRENT, seconds, part_size)

    def run_ramp(self, seconds: int, part_size: int) -> Path:
        return self._run_mode_exclusive(RecipeKind.RAMP, seconds, part_size)

    def run_recipe_mode(self, kind: RecipeKind, seconds: int, part_size: int) -> Path:
        """
        Drive the hardware through one recipe schedule for seconds 0..T inclusive.

        Raises InvalidRecipeError before the hardware starts, HardwareStartError
        if no log could be opened, and RunAbortedError (carrying the log path)
        when a second of work fails.
        """
        if int(seconds) < 0:
            raise InvalidRecipeError(f"duration must not be negative (got {seconds})")
        schedule = self._schedule_for(kind, part_size)
        return self._execute(kind.value, schedule, range(int(seconds) + 1))

    # ---------------------------------------------------
    # RECIPE FILES
    # ---------------------------------------------------
    def list_recipes(self) -> List[str]:
        recipe_dir = Path(self.config.storage.recipe_dir)
        if not recipe_dir.is_dir():
            return []
        return sorted(p.stem for p in recipe_dir.glob("*.txt"))

    def run_recipe(self, name: str) -> str:
        return self.run_from_recipe_file(Path(self.config.storage.recipe_dir) / f"{name}.txt")

    def run_from_recipe_file(self, path) -> str:
        path = Path(path)
        try:
            descriptor = read_descriptor(path)
        except InvalidRecipeError as exc:
            return self._report(f"Invalid recipe: {exc}")
        except (OSError, ValueError) as exc:
            return self._report(f"Unable to read recipe file {path}: {exc}")

        self._log(
            f"[Recipe] {path.name}: {descriptor.kind.value} "
            f"part size {descriptor.part_size} -> {descriptor.reference_name}"
        )
        self._claim_run(descriptor.kind.value)
        try:
            log_path = self.run_recipe_mode(
                descriptor.kind,
                self._recipe_seconds(descriptor.kind),
                descriptor.part_size,
            )
        except InvalidRecipeError as exc:
            message = f"Invalid recipe: {exc}"
            self._log(message)
            self._finish_run(message)
            return message
        except HardwareStartError:
            self._finish_run(START_FAILED)
            return START_FAILED
        except RunAbortedError as exc:
            self._finish_run(str(exc), exc.log_path)
            return BAD_PART.format(_name(exc.log_path))
        except Exception:
            self._finish_run("Recipe run failed")
            raise

        self._finish_run(None, log_path)
        return self._validate_result(log_path, descriptor.reference_name)

    def validate(self, log_path: Path, reference_name: str) -> bool:
        """Compare a run log against its reference dataset. Raises on unreadable files."""
        reference = read_records(self._reference_path(reference_name))
        produced = read_records(Path(log_path))
        return records_match(produced, reference, strict=self.config.validation.strict)

    # ---------------------------------------------------
    # COMMANDS
    # ---------------------------------------------------
    def stop_run(self) -> None:
        self._stop_event.set()
        self._log("[Stop] Stop requested")

    def clear_logs(self) -> None:
        with self._log_lock:
            self._log_buffer = []

    # ---------------------------------------------------
    # Internals
    # ---------------------------------------------------
    def _run_mode_exclusive(self, kind: RecipeKind, seconds: int, part_size: int) -> Path:
        self._claim_run(kind.value)
        try:
            path = self.run_recipe_mode(kind, seconds, part_size)
        except RunAbortedError as exc:
            self._finish_run(str(exc), exc.log_path)
            raise
        except Exception as exc:
            self._finish_run(str(exc) or exc.__class__.__name__)
            raise
        self._finish_run(None, path)
        return path

    def _schedule_for(self, kind: RecipeKind, part_size: int) -> Schedule:
        if kind is RecipeKind.CONSTANT_PRESSURE:
            return constant_pressure(part_size)
        if kind is RecipeKind.CONSTANT_CURRENT:
            return constant_current(part_size)
        if kind is RecipeKind.RAMP:
            return ramp(part_size, self.config.recipes.ramp_min_part_size)
        raise InvalidRecipeError(f"unknown recipe kind '{kind}'")

    def _recipe_seconds(self, kind: RecipeKind) -> int:
        recipes = self.config.recipes
        return {
            RecipeKind.CONSTANT_PRESSURE: recipes.constant_pressure_seconds,
            RecipeKind.CONSTANT_CURRENT: recipes.constant_current_seconds,
            RecipeKind.RAMP: recipes.ramp_seconds,
        }[kind]

    def _execute(self, name: str, schedule: Schedule, seconds: range) -> Path:
        if not self.hardware.start():
            self._log(f"[Hardware] Start failed ({self.hardware.last_error})")
            raise HardwareStartError(self.hardware.last_error or START_FAILED)
        self._log(f"[{name}] Started, logging to {_name(self.hardware.log_path)}")
        try:
            for second in seconds:
                pressure, current = schedule(second)
                if not self.hardware.perform_unit_of_work(pressure, current, second):
                    error = self.hardware.last_error
                    path = self.hardware.stop()
                    self._log(f"[{name}] Aborted at second {second}: {error}")
                    raise RunAbortedError(f"{name} aborted: {error}", path)
        except RunAbortedError:
            raise
        except Exception:
            self.hardware.stop()
            self._log(f"[{name}] Hardware stopped after failure")
            raise
        path = self.hardware.stop()
        self._log(f"[{name}] Complete ({_name(path)})")
        return path

    def _validate_result(self, log_path: Path, reference_name: str) -> str:
        reference_path = self._reference_path(reference_name)
        try:
            reference = read_records(reference_path)
        except (OSError, ValueError) as exc:
            return self._report(f"Unable to read reference data {reference_path}: {exc}")
        try:
            produced = read_records(log_path)
        except (OSError, ValueError) as exc:
            return self._report(f"Unable to read run log {log_path}: {exc}")

        if records_match(produced, reference, strict=self.config.validation.strict):
            self._log(f"[Validate] {_name(log_path)} matches {reference_path.name}")
            return GOOD_PART.format(_name(log_path))
        self._log(
            f"[Validate] {_name(log_path)} differs from {reference_path.name} "
            f"({len(produced)} vs {len(reference)} records)"
        )
        return BAD_PART.format(_name(log_path))

    def _reference_path(self, reference_name: str) -> Path:
        path = Path(self.config.storage.reference_dir) / reference_name
        return path if path.suffix else path.with_suffix(".csv")

    def _claim_run(self, name: str) -> None:
        if not self._run_lock.acquire(blocking=False):
            with self._state_lock:
                op = self.state.current_run or "run"
            raise RuntimeError(f"A run is already in progress ('{op}')")
        self._stop_event.clear()
        with self._state_lock:
            self.state.state = "RUNNING"
            self.state.current_run = name
            self.state.last_error = None

    def _finish_run(self, error: Optional[str], log_path: Optional[Path] = None) -> None:
        with self._state_lock:
            self.state.state = "ERROR" if error else "IDLE"
            self.state.last_error = error
            self.state.current_run = None
            if log_path is not None:
                self.state.last_log = log_path.name
        self._stop_event.clear()
        self._run_lock.release()

    def _ensure_manual_allowed(self) -> None:
        with self._state_lock:
            running = self.state.state == "RUNNING"
            current = self.state.current_run
        if running:
            raise RuntimeError(f"Manual command blocked while '{current}' is running")

    def _report(self, message: str) -> str:
        with self._state_lock:
            self.state.state = "ERROR"
            self.state.last_error = message
        self._log(message)
        return message

    def _log(self, message: str) -> None:
        with self._log_lock:
            self._log_buffer.append(message)
            self._log_buffer = self._log_buffer[-500:]


def _name(path: Optional[Path]) -> str:
    return path.name if path is not None else "<none>"
