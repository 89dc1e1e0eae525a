"""
molevo/population/factory.py

Random molecule generation for the initial population.

Construction
------------
1.  Draw an atom count uniformly from [2, max_atoms].
2.  Draw each atom's element uniformly from ELEMENT.random_pool() (C, O, N).
3.  Make ceil(1.5 × n_atoms) bond attempts.  Each attempt picks two distinct
    atoms at random and adds a bond unless the pair is already bonded or
    either atom is saturated.

The result is valence-valid but not guaranteed to be connected, and it may
carry fewer bonds than attempts.  Fitness is 0 until evaluation.

Public API
----------
    random_element(rng)                      → str
    create_random_molecule(max_atoms, rng)   → Molecule
    build_random_population(size, max_atoms, rng) → list[Molecule]
"""

from __future__ import annotations

import math

import numpy as np

from molevo.structure.catalog import ELEMENT
from molevo.structure.molecule import Atom, Bond, Molecule


def random_element(rng: np.random.Generator | None = None) -> str:
    """Uniform draw from the random-generation element pool."""
    if rng is None:
        rng = np.random.default_rng()
    pool = ELEMENT.random_pool()
    return pool[int(rng.integers(len(pool)))]


def random_pair(n: int, rng: np.random.Generator) -> tuple[int, int]:
    """Two distinct indices in [0, n), the second resampled while equal."""
    i = int(rng.integers(n))
    j = int(rng.integers(n))
    while j == i:
        j = int(rng.integers(n))
    return i, j


def create_random_molecule(
    max_atoms: int,
    rng: np.random.Generator | None = None,
) -> Molecule:
    """
    Build one random, valence-respecting molecule.

    Parameters
    ----------
    max_atoms:
        Upper bound on the atom count (>= 2).
    rng:
        NumPy random generator.  A new one is created internally if None.

    Returns
    -------
    Molecule
        A molecule with 2..max_atoms atoms and fitness 0.
    """
    if rng is None:
        rng = np.random.default_rng()
    if max_atoms < 2:
        raise ValueError(f"max_atoms must be >= 2, got {max_atoms}.")

    n_atoms = int(rng.integers(2, max_atoms + 1))
    mol = Molecule(atoms=[Atom(element=random_element(rng)) for _ in range(n_atoms)])

    for _ in range(math.ceil(n_atoms * 1.5)):
        i, j = random_pair(n_atoms, rng)
        a, b = mol.atoms[i], mol.atoms[j]
        if mol.has_bond(a.id, b.id):
            continue
        if not (mol.has_headroom(a) and mol.has_headroom(b)):
            continue
        mol.bonds.append(Bond(source=a.id, target=b.id))

    return mol


def build_random_population(
    size: int,
    max_atoms: int,
    rng: np.random.Generator | None = None,
) -> list[Molecule]:
    """`size` independent random molecules (unevaluated)."""
    if rng is None:
        rng = np.random.default_rng()
    return [create_random_molecule(max_atoms, rng) for _ in range(size)]
