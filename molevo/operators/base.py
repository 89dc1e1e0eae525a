"""
molevo/operators/base.py

Abstract base class for the structural mutation operators.

Every operator edits a *working copy* of a molecule in place.  The working
copy is created once per mutate() call (molevo/operators/mutation.py), so
operators applied later in the sequence see the edits of earlier ones while
the parent molecule stays untouched.

Contract
--------
  - precondition(mol, max_atoms) is checked after the Bernoulli trial fires;
    when it is False the operator does nothing.
  - apply() must leave the working copy structurally valid (every bond
    between two distinct existing atoms, no duplicates) and must not push
    any atom above its maximum valence.

Operator registry
-----------------
Operators are registered by name in MUTATION_REGISTRY; MUTATION_ORDER is
the fixed sequence in which mutate() tries them:

    from molevo.operators.base import MUTATION_REGISTRY, MUTATION_ORDER
    op = MUTATION_REGISTRY["add_bond"]
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from molevo.structure.molecule import Molecule


class MutationOperator(ABC):
    """
    Abstract base class for molevo mutation operators.

    Subclasses implement apply() and set `name`.
    """

    #: Registry key, also used in log messages
    name: str = ""

    def precondition(self, molecule: Molecule, max_atoms: int) -> bool:
        """True if the operator can act on this molecule."""
        return True

    @abstractmethod
    def apply(
        self,
        molecule: Molecule,
        rng: np.random.Generator,
        max_atoms: int,
    ) -> None:
        """
        Edit the working copy in place.

        Parameters
        ----------
        molecule:
            Working copy owned by the caller.  Modified in place.
        rng:
            NumPy random generator.
        max_atoms:
            Atom-count ceiling for operators that grow the molecule.
        """
        ...

    def __call__(
        self,
        molecule: Molecule,
        rng: np.random.Generator | None = None,
        max_atoms: int = 2,
    ) -> Molecule:
        """
        Convenience: apply to a clone and return it.

        The input is never modified.  The clone keeps the input's id; if the
        precondition fails the clone is returned unchanged.
        """
        if rng is None:
            rng = np.random.default_rng()
        work = molecule.clone()
        if self.precondition(work, max_atoms):
            self.apply(work, rng, max_atoms)
        return work


# ---------------------------------------------------------------------------
# Operator registry (populated by molevo.operators.mutation on import)
# ---------------------------------------------------------------------------

MUTATION_REGISTRY: dict[str, MutationOperator] = {}

#: Fixed application order used by mutate()
MUTATION_ORDER: list[str] = []
