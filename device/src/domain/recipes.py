import re
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from pydantic import ValidationError

from domain.models import RecipeDescriptor, RecipeKind


class InvalidRecipeError(ValueError):
    pass


class HardwareStartError(RuntimeError):
    pass


class RunAbortedError(RuntimeError):
    def __init__(self, message: str, log_path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.log_path = log_path


Schedule = Callable[[int], Tuple[int, int]]


def constant_pressure(part_size: int) -> Schedule:
    def step(second: int) -> Tuple[int, int]:
        return part_size + 100, 2 * second

    return step


def constant_current(part_size: int) -> Schedule:
    def step(second: int) -> Tuple[int, int]:
        return max(10, 50 - 2 * second), part_size + 50

    return step


def ramp(part_size: int, min_part_size: int = 50) -> Schedule:
    if part_size <= min_part_size:
        raise InvalidRecipeError(
            f"part size below minimum ({part_size} <= {min_part_size})"
        )

    def step(second: int) -> Tuple[int, int]:
        return min(100, 10 * second), part_size + 20 * second

    return step


_PART_SIZE = re.compile(r"[+-]?[0-9]+")

_KIND_NAMES: Dict[str, RecipeKind] = {kind.value: kind for kind in RecipeKind}


def parse_descriptor(line: str) -> RecipeDescriptor:
    """Parse `referenceName,recipeKind,partSize`; kind names match exactly."""
    parts = line.strip().split(",")
    if len(parts) != 3:
        raise InvalidRecipeError(f"expected 3 fields, got {len(parts)}")
    reference_name, kind_name, part_size_raw = parts

    kind = _KIND_NAMES.get(kind_name)
    if kind is None:
        raise InvalidRecipeError(f"unknown recipe kind '{kind_name}'")
    if not _PART_SIZE.fullmatch(part_size_raw):
        raise InvalidRecipeError(f"part size '{part_size_raw}' is not an integer")
    part_size = int(part_size_raw, 10)

    try:
        return RecipeDescriptor(reference_name=reference_name, kind=kind, part_size=part_size)
    except ValidationError as exc:
        raise InvalidRecipeError(f"bad descriptor ({exc.errors()[0]['msg']})")


def read_descriptor(path: Path) -> RecipeDescriptor:
    """Read the first line of a recipe file. Raises OSError if unreadable."""
    with open(path, "r", encoding="utf-8") as fh:
        line = fh.readline()
    if not line.strip():
        raise InvalidRecipeError("recipe file is empty")
    return parse_descriptor(line)
