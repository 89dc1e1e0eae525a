"""
molevo/analysis/export.py

File export of run results, built from a controller snapshot.

Formats
-------
best molecule     Indented JSON of the Molecule model (id, atoms, bonds,
                  fitness).  read_molecule_json() loads it back, e.g. to
                  seed a new run.
fitness history   CSV with header  generation,bestFitness,avgFitness
                  and fitness values written to 4 decimals.

Default file names carry the generation the run stopped at:
best_molecule_gen{N}.json and evolution_history_gen{N}.csv.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from molevo.structure.molecule import Molecule

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ["generation", "bestFitness", "avgFitness"]


def write_molecule_json(molecule: Molecule, path: str | Path) -> Path:
    """Write a molecule as indented JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(molecule.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"Wrote molecule {molecule.id[:8]} to {path}")
    return path


def read_molecule_json(path: str | Path) -> Molecule:
    """
    Load a molecule written by write_molecule_json().

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    pydantic.ValidationError
        If the content is not a structurally valid molecule.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Molecule file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    return Molecule.model_validate(raw)


def history_dataframe(history):
    """Fitness history as a DataFrame with the export column names."""
    import pandas as pd

    return pd.DataFrame(
        [(r.generation, r.best_fitness, r.average_fitness) for r in history],
        columns=HISTORY_COLUMNS,
    )


def write_history_csv(history, path: str | Path) -> Path:
    """
    Write the fitness history as CSV.

    Parameters
    ----------
    history:
        Sequence of FitnessRecord (EvolutionState.history).
    path:
        Output file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    history_dataframe(history).to_csv(path, index=False, float_format="%.4f")
    logger.info(f"Wrote {len(history)} history rows to {path}")
    return path


def export_state(state, out_dir: str | Path) -> list[Path]:
    """
    Write the best molecule and fitness history of a snapshot to out_dir.

    Either file is skipped when there is nothing to write.
    """
    out_dir = Path(out_dir)
    written: list[Path] = []
    if state.best is not None:
        written.append(write_molecule_json(
            state.best, out_dir / f"best_molecule_gen{state.generation}.json"
        ))
    if state.history:
        written.append(write_history_csv(
            state.history, out_dir / f"evolution_history_gen{state.generation}.csv"
        ))
    return written
