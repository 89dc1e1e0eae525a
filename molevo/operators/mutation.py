"""
molevo/operators/mutation.py

Structural mutation operators and the combined mutate() step.

Five operators, tried in this fixed order
-----------------------------------------
retype_atom     Change one random atom to a random element.  If the new
                element allows fewer bonds than the atom carries, its
                earliest-listed bonds are removed until it fits.
add_atom        Append one random atom (only below max_atoms) and try to
                bond it to one random pre-existing atom, if both have room.
remove_atom     Delete one random atom (only if more than one is left)
                together with all of its bonds.
add_bond        Bond two distinct random atoms, if they are not bonded yet
                and both have room.
remove_bond     Delete one random bond, if any exist.

mutate() gives every operator one independent Bernoulli(mutation_rate)
trial against a single working copy, so later operators see earlier edits.
With mutation_rate = 0 nothing fires and the result differs from the parent
only in its id.

All operators:
  - Never modify the parent molecule
  - Keep every bond between two distinct existing atoms, without duplicates
  - Never leave an atom above its maximum valence that was not already there

Public API
----------
    mutate(molecule, mutation_rate, max_atoms, rng) → Molecule
    retype_atom(molecule, rng)                      → Molecule
    add_atom(molecule, max_atoms, rng)              → Molecule
    remove_atom(molecule, rng)                      → Molecule
    add_bond(molecule, rng)                         → Molecule
    remove_bond(molecule, rng)                      → Molecule
"""

from __future__ import annotations

import logging

import numpy as np

from molevo.operators.base import MUTATION_ORDER, MUTATION_REGISTRY, MutationOperator
from molevo.population.factory import random_element, random_pair
from molevo.structure.molecule import Atom, Bond, Molecule

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

class RetypeAtomOperator(MutationOperator):
    name = "retype_atom"

    def precondition(self, molecule, max_atoms):
        return len(molecule.atoms) > 0

    def apply(self, molecule, rng, max_atoms):
        atom = molecule.atoms[int(rng.integers(len(molecule.atoms)))]
        new_element = random_element(rng)
        if new_element == atom.element:
            return
        atom.element = new_element

        incident = molecule.incident_bonds(atom.id)
        excess = len(incident) - atom.max_valence
        if excess > 0:
            drop = {b.id for b in incident[:excess]}
            molecule.bonds = [b for b in molecule.bonds if b.id not in drop]


class AddAtomOperator(MutationOperator):
    name = "add_atom"

    def precondition(self, molecule, max_atoms):
        return len(molecule.atoms) < max_atoms

    def apply(self, molecule, rng, max_atoms):
        new_atom = Atom(element=random_element(rng))
        molecule.atoms.append(new_atom)
        n_existing = len(molecule.atoms) - 1
        if n_existing == 0:
            return
        partner = molecule.atoms[int(rng.integers(n_existing))]
        if molecule.has_headroom(new_atom) and molecule.has_headroom(partner):
            molecule.bonds.append(Bond(source=new_atom.id, target=partner.id))


class RemoveAtomOperator(MutationOperator):
    name = "remove_atom"

    def precondition(self, molecule, max_atoms):
        return len(molecule.atoms) > 1

    def apply(self, molecule, rng, max_atoms):
        removed = molecule.atoms.pop(int(rng.integers(len(molecule.atoms))))
        molecule.bonds = [b for b in molecule.bonds if not b.touches(removed.id)]


class AddBondOperator(MutationOperator):
    name = "add_bond"

    def precondition(self, molecule, max_atoms):
        return len(molecule.atoms) >= 2

    def apply(self, molecule, rng, max_atoms):
        i, j = random_pair(len(molecule.atoms), rng)
        a, b = molecule.atoms[i], molecule.atoms[j]
        if molecule.has_bond(a.id, b.id):
            return
        if molecule.has_headroom(a) and molecule.has_headroom(b):
            molecule.bonds.append(Bond(source=a.id, target=b.id))


class RemoveBondOperator(MutationOperator):
    name = "remove_bond"

    def precondition(self, molecule, max_atoms):
        return len(molecule.bonds) > 0

    def apply(self, molecule, rng, max_atoms):
        molecule.bonds.pop(int(rng.integers(len(molecule.bonds))))


for _op in (
    RetypeAtomOperator(),
    AddAtomOperator(),
    RemoveAtomOperator(),
    AddBondOperator(),
    RemoveBondOperator(),
):
    MUTATION_REGISTRY[_op.name] = _op
    MUTATION_ORDER.append(_op.name)


# ---------------------------------------------------------------------------
# Combined mutation step
# ---------------------------------------------------------------------------

def mutate(
    molecule: Molecule,
    mutation_rate: float,
    max_atoms: int,
    rng: np.random.Generator | None = None,
) -> Molecule:
    """
    Produce one mutated offspring.

    Parameters
    ----------
    molecule:
        Parent molecule.  Not modified.
    mutation_rate:
        Probability that each of the five operators fires.  Values above 1
        simply make every trial succeed.
    max_atoms:
        Atom-count ceiling for add_atom.
    rng:
        NumPy random generator.

    Returns
    -------
    Molecule
        Offspring with a new id and fitness 0 (pending evaluation).
    """
    if rng is None:
        rng = np.random.default_rng()

    work = molecule.clone(new_id=True)
    fired: list[str] = []
    for name in MUTATION_ORDER:
        op = MUTATION_REGISTRY[name]
        if rng.random() < mutation_rate and op.precondition(work, max_atoms):
            op.apply(work, rng, max_atoms)
            fired.append(name)

    work.fitness = 0.0
    if fired:
        logger.debug(f"mutate {molecule.id[:8]} → {work.id[:8]}: {', '.join(fired)}")
    return work


# ---------------------------------------------------------------------------
# Single-operator helpers
# ---------------------------------------------------------------------------

def retype_atom(molecule: Molecule, rng: np.random.Generator | None = None) -> Molecule:
    return MUTATION_REGISTRY["retype_atom"](molecule, rng)


def add_atom(
    molecule: Molecule,
    max_atoms: int,
    rng: np.random.Generator | None = None,
) -> Molecule:
    return MUTATION_REGISTRY["add_atom"](molecule, rng, max_atoms)


def remove_atom(molecule: Molecule, rng: np.random.Generator | None = None) -> Molecule:
    return MUTATION_REGISTRY["remove_atom"](molecule, rng)


def add_bond(molecule: Molecule, rng: np.random.Generator | None = None) -> Molecule:
    return MUTATION_REGISTRY["add_bond"](molecule, rng)


def remove_bond(molecule: Molecule, rng: np.random.Generator | None = None) -> Molecule:
    return MUTATION_REGISTRY["remove_bond"](molecule, rng)
