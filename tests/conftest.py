"""
tests/conftest.py

Shared pytest fixtures for the molevo test suite.

Everything here is in-memory and deterministic: random generators are
seeded and controllers use the ManualScheduler unless a test explicitly
wants the threaded one.

Fixture overview
----------------
Random numbers
    rng                 Seeded numpy Generator

Molecules
    make_molecule       Factory: build a Molecule from element symbols and
                        index-pair bonds
    propane_skeleton    C-C-C chain (two bonds)

Parameters
    small_params        EvolutionParams for a fast 5-generation run

Controllers
    manual_controller   EvolutionController driven by a ManualScheduler
"""

from __future__ import annotations

import numpy as np
import pytest

from molevo.config import EvolutionParams
from molevo.fitness.properties import TARGET
from molevo.runner.controller import EvolutionController
from molevo.scheduler.local import ManualScheduler
from molevo.structure.molecule import Atom, Bond, Molecule


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_molecule(
    elements: list[str],
    bonds: list[tuple[int, int]] = (),
    fitness: float = 0.0,
) -> Molecule:
    """
    Build a molecule from a list of element symbols and bonds given as
    (atom_index, atom_index) pairs.
    """
    atoms = [Atom(element=e) for e in elements]
    return Molecule(
        atoms=atoms,
        bonds=[Bond(source=atoms[i].id, target=atoms[j].id) for i, j in bonds],
        fitness=fitness,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


@pytest.fixture(scope="session")
def make_molecule():
    """
    Factory fixture: returns build_molecule.

    Usage:
        def test_something(make_molecule):
            mol = make_molecule(["C", "O"], [(0, 1)])
    """
    return build_molecule


@pytest.fixture
def propane_skeleton() -> Molecule:
    """Three carbons in a chain: C0-C1-C2."""
    return build_molecule(["C", "C", "C"], [(0, 1), (1, 2)])


@pytest.fixture
def small_params() -> EvolutionParams:
    return EvolutionParams(
        population_size=8,
        mutation_rate=0.3,
        max_generations=5,
        elitism_count=2,
        max_atoms_per_molecule=6,
    )


@pytest.fixture
def manual_controller(small_params) -> EvolutionController:
    """Controller on a ManualScheduler; advance it with scheduler.tick()."""
    return EvolutionController(
        params=small_params,
        target_property=TARGET.MAXIMIZE_BONDS,
        scheduler=ManualScheduler(),
        rng=np.random.default_rng(7),
    )
