"""Loading formulas from YAML or JSON files."""

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from ..errors import FormulaError, FormulaNotFoundError
from .descriptor import PackageReleaseDescriptor

logger = logging.getLogger(__name__)

FORMULA_SUFFIXES = (".yaml", ".yml", ".json")


def bundled_formula_dir() -> Path:
    """Directory holding the formulas shipped with keg."""
    return Path(str(resources.files("keg") / "formulas"))


def _read_document(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise FormulaError(f"Could not parse formula {path}: {e}") from e

    if not isinstance(data, dict):
        raise FormulaError(f"Formula {path} must contain a mapping at the top level")
    return data


def load_descriptor(path: Path | str) -> PackageReleaseDescriptor:
    """Load and validate a formula file.

    Args:
        path: Path to a .yaml, .yml or .json formula

    Returns:
        The validated PackageReleaseDescriptor

    Raises:
        FormulaNotFoundError: If the file does not exist
        FormulaError: If the file cannot be parsed or fails validation
    """
    path = Path(path)
    if not path.is_file():
        raise FormulaNotFoundError(f"Formula file not found: {path}")
    if path.suffix not in FORMULA_SUFFIXES:
        raise FormulaError(
            f"Unsupported formula format '{path.suffix}' "
            f"(expected one of: {', '.join(FORMULA_SUFFIXES)})"
        )

    data = _read_document(path)
    try:
        descriptor = PackageReleaseDescriptor.model_validate(data)
    except ValidationError as e:
        raise FormulaError(f"Invalid formula {path}:\n{e}") from e

    logger.debug(f"Loaded formula {descriptor.name} {descriptor.version} from {path}")
    return descriptor


def _search_dirs(search_paths: Iterable[Path]) -> list[Path]:
    return [*search_paths, bundled_formula_dir()]


def find_formula(ref: str, search_paths: Iterable[Path] = ()) -> PackageReleaseDescriptor:
    """Resolve a formula reference to a descriptor.

    A reference is either a path to an existing formula file or a formula name
    looked up in the search paths and then in the bundled formulas.
    """
    candidate = Path(ref).expanduser()
    if candidate.suffix in FORMULA_SUFFIXES and candidate.is_file():
        return load_descriptor(candidate)

    for directory in _search_dirs(search_paths):
        for suffix in FORMULA_SUFFIXES:
            path = directory / f"{ref}{suffix}"
            if path.is_file():
                return load_descriptor(path)

    raise FormulaNotFoundError(f"No formula named '{ref}'")


def available_formulas(search_paths: Iterable[Path] = ()) -> dict[str, Path]:
    """Map every formula name in the search paths to the file defining it.

    Earlier directories shadow later ones, matching find_formula().
    """
    found: dict[str, Path] = {}
    for directory in _search_dirs(search_paths):
        if not directory.is_dir():
            continue
        for path in sorted(directory.iterdir()):
            if path.suffix in FORMULA_SUFFIXES and path.stem not in found:
                found[path.stem] = path
    return found
