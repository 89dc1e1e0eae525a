"""
molevo/config.py

Load and validate a molevo.yaml file into typed configuration models.

Usage
-----
    from molevo.config import load_config

    cfg = load_config("molevo.yaml")
    print(cfg.evolution.population_size)
    print(cfg.target_property)

All models use pydantic v2.  Integer inputs for float fields (e.g.
mutation_rate: 1) are coerced without extra validators.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

from molevo.fitness.properties import TARGET, FitnessGoals


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class EvolutionParams(BaseModel):
    """
    Genetic algorithm hyperparameters.

    These are fixed for the duration of a run unless changed through the
    controller (update_params / reset).

    population_size          molecules per generation (>= 1)
    mutation_rate            per-operator firing probability in [0, 1]
    max_generations          the run completes once this generation index
                             has been recorded (>= 0)
    elitism_count            top molecules copied unmutated into the next
                             generation (>= 0)
    max_atoms_per_molecule   atom-count ceiling for generation and mutation
                             (>= 2)
    """

    population_size: int = 50
    mutation_rate: float = 0.1
    max_generations: int = 100
    elitism_count: int = 2
    max_atoms_per_molecule: int = 15

    @field_validator("population_size")
    @classmethod
    def _positive_population(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"population_size must be >= 1, got {v}.")
        return v

    @field_validator("mutation_rate")
    @classmethod
    def _probability(cls, v: float) -> float:
        if not (0.0 <= v <= 1.0):
            raise ValueError(f"mutation_rate must be in [0, 1], got {v}.")
        return v

    @field_validator("max_generations", "elitism_count")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be >= 0, got {v}.")
        return v

    @field_validator("max_atoms_per_molecule")
    @classmethod
    def _at_least_two_atoms(cls, v: int) -> int:
        if v < 2:
            raise ValueError(f"max_atoms_per_molecule must be >= 2, got {v}.")
        return v


class SchedulerConfig(BaseModel):
    """
    How generation steps are driven.

    type options
    ------------
    "thread"  – background thread, one step every `interval` seconds
    "manual"  – the caller drives steps explicitly (tests, notebooks)
    """

    type: str = "thread"
    interval: float = 0.05              # seconds between generation steps

    @field_validator("type")
    @classmethod
    def _valid_type(cls, v: str) -> str:
        allowed = {"thread", "manual"}
        if v not in allowed:
            raise ValueError(f"scheduler type must be one of {allowed}, got '{v}'.")
        return v

    @field_validator("interval")
    @classmethod
    def _non_negative_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"interval must be >= 0 s, got {v}.")
        return v


# ---------------------------------------------------------------------------
# Root config model
# ---------------------------------------------------------------------------


class MolevoConfig(BaseModel):
    """
    Root configuration object loaded from molevo.yaml.

    Every section is optional; the defaults reproduce the stock simulator
    (population 50, mutation rate 0.1, 100 generations, 2 elites,
    15 atoms, MAXIMIZE_BONDS).
    """

    evolution: EvolutionParams = EvolutionParams()
    target_property: str = TARGET.MAXIMIZE_BONDS
    goals: FitnessGoals = FitnessGoals()
    scheduler: SchedulerConfig = SchedulerConfig()

    @field_validator("target_property")
    @classmethod
    def _known_target(cls, v: str) -> str:
        return TARGET.validate(v)


DEFAULT_EVOLUTION_PARAMS = EvolutionParams()
DEFAULT_TARGET_PROPERTY: str = TARGET.MAXIMIZE_BONDS


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> MolevoConfig:
    """
    Load and validate a molevo.yaml file.

    Parameters
    ----------
    path:
        Path to the YAML configuration file.

    Returns
    -------
    MolevoConfig
        Fully validated configuration object.

    Raises
    ------
    FileNotFoundError
        If the YAML file does not exist.
    ValueError
        If the file is empty or its top level is not a mapping.
    pydantic.ValidationError
        If the YAML content fails validation.  The message lists every
        field that failed and why.
    yaml.YAMLError
        If the file is not valid YAML.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    if path.stat().st_size == 0:
        raise ValueError(
            f"Configuration file is empty: {path}\n"
            "Generate a template with: molevo init > molevo.yaml"
        )

    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    if raw is None:
        raise ValueError(
            f"{path} contains only comments or whitespace, no YAML keys found.\n"
            "Generate a template with: molevo init > molevo.yaml"
        )
    if not isinstance(raw, dict):
        raise ValueError(
            f"Expected a YAML mapping at the top level, got {type(raw).__name__}.  "
            "Make sure molevo.yaml starts with a key like 'evolution:' at column 0."
        )

    return MolevoConfig.model_validate(raw)


def generate_example_config(path: str | Path = "molevo.yaml.example") -> Path:
    """Write the commented example molevo.yaml to disk and return its path."""
    path = Path(path)
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    return path


CONFIG_TEMPLATE = """\
# molevo.yaml: molecular evolution configuration
# Every section is optional; omitted keys take the defaults shown here.

# ---------------------------------------------------------------------------
# Genetic algorithm
# ---------------------------------------------------------------------------
evolution:
  population_size: 50          # molecules per generation (>= 1)
  mutation_rate: 0.1           # per-operator probability, 0.0 - 1.0
  max_generations: 100         # run completes at this generation index
  elitism_count: 2             # top molecules copied unmutated
  max_atoms_per_molecule: 15   # >= 2

# ---------------------------------------------------------------------------
# What to optimise (see `molevo targets` for the full list)
# ---------------------------------------------------------------------------
target_property: MAXIMIZE_BONDS

# ---------------------------------------------------------------------------
# Goal values for the weight and Lipinski targets
# ---------------------------------------------------------------------------
goals:
  target_weight: 50            # Da, TARGET_MOLECULAR_WEIGHT
  weight_range_min: 40         # Da, TARGET_MOLECULAR_WEIGHT_RANGE
  weight_range_max: 120
  lipinski_max_weight: 500
  lipinski_max_donors: 5
  lipinski_max_acceptors: 10

# ---------------------------------------------------------------------------
# Generation stepping
# ---------------------------------------------------------------------------
scheduler:
  type: thread                 # thread | manual
  interval: 0.05               # seconds between generation steps
"""
