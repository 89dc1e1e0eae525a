"""
molevo/structure/molecule.py

Graph model of a molecule: typed atoms as nodes, undirected bonds as edges.

Invariants
----------
Enforced by the Molecule validator whenever a Molecule is constructed or
validated from raw data (JSON, YAML, dicts):

  - atom ids are unique within a molecule
  - every bond references two distinct atom ids that exist in the molecule
  - no two bonds join the same unordered pair of atoms

Valence limits are NOT enforced by the model.  A hand-built seed may be
over-valent; the mutation operators are responsible for never creating
new violations (see molevo/operators/mutation.py).  over_valent_atoms()
reports violations for callers that care.

Fitness
-------
`fitness` is derived data.  It is set by molevo/fitness/properties.py after
every structural change and reset to 0 by mutate() until re-evaluation.

Value semantics
---------------
Genetic operators never edit a molecule that belongs to a population.
They work on clone(), an independent deep copy, so elites carried into the
next generation can never be changed through a shared reference.

Usage
-----
    from molevo.structure.molecule import Atom, Bond, Molecule

    c1, c2 = Atom(element="C"), Atom(element="C")
    mol = Molecule(atoms=[c1, c2], bonds=[Bond(source=c1.id, target=c2.id)])
    mol.molecular_weight    # 24.0
    mol.formula             # "C2"
"""

from __future__ import annotations

import uuid
from collections import Counter

from pydantic import BaseModel, Field, field_validator, model_validator

from molevo.structure.catalog import ATOM_CATALOG, ELEMENT, atomic_mass, max_valence


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Atom / Bond
# ---------------------------------------------------------------------------

class Atom(BaseModel):
    """
    One atom.

    x / y are 2D layout coordinates owned by whatever draws the molecule.
    The evolution core copies them along but never reads them.
    """

    id: str = Field(default_factory=_new_id)
    element: str
    x: float | None = None
    y: float | None = None

    @field_validator("element")
    @classmethod
    def _known_element(cls, v: str) -> str:
        if v not in ATOM_CATALOG:
            raise ValueError(
                f"element must be one of {ELEMENT.all()}, got '{v}'."
            )
        return v

    @property
    def max_valence(self) -> int:
        return max_valence(self.element)


class Bond(BaseModel):
    """An undirected bond; source and target are interchangeable."""

    id: str = Field(default_factory=_new_id)
    source: str
    target: str

    @model_validator(mode="after")
    def _distinct_endpoints(self) -> "Bond":
        if self.source == self.target:
            raise ValueError(f"Bond {self.id} joins atom {self.source} to itself.")
        return self

    @property
    def key(self) -> frozenset[str]:
        """Unordered endpoint pair, used for duplicate detection."""
        return frozenset((self.source, self.target))

    def touches(self, atom_id: str) -> bool:
        return self.source == atom_id or self.target == atom_id


# ---------------------------------------------------------------------------
# Molecule
# ---------------------------------------------------------------------------

class Molecule(BaseModel):
    """
    A molecule in the population.

    Fields
    ------
    id : str
        Identity of this individual.  mutate() always assigns a new one;
        elites keep theirs when carried into the next generation.
    atoms : list[Atom]
        Insertion-ordered atoms.
    bonds : list[Bond]
        Bonds between atoms of this molecule.
    fitness : float
        Score under the current target property (0 until evaluated).
    """

    id: str = Field(default_factory=_new_id)
    atoms: list[Atom] = Field(default_factory=list)
    bonds: list[Bond] = Field(default_factory=list)
    fitness: float = 0.0

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def _consistent_graph(self) -> "Molecule":
        problems = self.check_integrity()
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def check_integrity(self) -> list[str]:
        """
        Return a list of structural problems (empty when the molecule is valid).

        Checked: unique atom ids, bonds between existing distinct atoms,
        no duplicate bonds.  Valence is reported separately by
        over_valent_atoms().
        """
        problems: list[str] = []
        ids = [a.id for a in self.atoms]
        if len(ids) != len(set(ids)):
            problems.append("atom ids are not unique")
        known = set(ids)
        seen: set[frozenset[str]] = set()
        for bond in self.bonds:
            if bond.source == bond.target:
                problems.append(f"bond {bond.id} is a self-bond")
                continue
            if bond.source not in known or bond.target not in known:
                problems.append(f"bond {bond.id} references a missing atom")
            if bond.key in seen:
                problems.append(
                    f"duplicate bond between {bond.source} and {bond.target}"
                )
            seen.add(bond.key)
        return problems

    # ------------------------------------------------------------------
    # Look-ups
    # ------------------------------------------------------------------

    @property
    def atom_ids(self) -> list[str]:
        return [a.id for a in self.atoms]

    def get_atom(self, atom_id: str) -> Atom | None:
        for atom in self.atoms:
            if atom.id == atom_id:
                return atom
        return None

    def incident_bonds(self, atom_id: str) -> list[Bond]:
        """Bonds touching the atom, in bond-list order."""
        return [b for b in self.bonds if b.touches(atom_id)]

    def valence(self, atom_id: str) -> int:
        """Current number of bonds on the atom."""
        return sum(1 for b in self.bonds if b.touches(atom_id))

    def has_bond(self, a: str, b: str) -> bool:
        key = frozenset((a, b))
        return any(bond.key == key for bond in self.bonds)

    def has_headroom(self, atom: Atom) -> bool:
        """True if the atom can accept one more bond."""
        return self.valence(atom.id) < atom.max_valence

    def over_valent_atoms(self) -> list[Atom]:
        return [a for a in self.atoms if self.valence(a.id) > a.max_valence]

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def count(self, element: str) -> int:
        return sum(1 for a in self.atoms if a.element == element)

    @property
    def element_counts(self) -> dict[str, int]:
        return dict(Counter(a.element for a in self.atoms))

    @property
    def molecular_weight(self) -> float:
        """Sum of catalog atomic masses (Da)."""
        return float(sum(atomic_mass(a.element) for a in self.atoms))

    @property
    def formula(self) -> str:
        """
        Heavy-atom formula, carbon first, then alphabetical (e.g. "C2N1O3").

        Hydrogen is left out, matching the implicit-hydrogen model.
        Returns "N/A" when nothing is left to count.
        """
        counts = Counter(a.element for a in self.atoms if a.element != ELEMENT.H)
        parts: list[str] = []
        if counts.get(ELEMENT.C):
            parts.append(f"{ELEMENT.C}{counts.pop(ELEMENT.C)}")
        for symbol in sorted(counts):
            parts.append(f"{symbol}{counts[symbol]}")
        return "".join(parts) or "N/A"

    # ------------------------------------------------------------------
    # Graph view
    # ------------------------------------------------------------------

    def to_graph(self):
        """
        Build an undirected networkx Graph of the molecule.

        Nodes are atom ids with an 'element' attribute.  Every atom is a
        node, including isolated ones, so connected components are counted
        over all atoms.
        """
        import networkx as nx

        g = nx.Graph()
        for atom in self.atoms:
            g.add_node(atom.id, element=atom.element)
        for bond in self.bonds:
            if g.has_node(bond.source) and g.has_node(bond.target):
                g.add_edge(bond.source, bond.target, id=bond.id)
        return g

    @property
    def n_components(self) -> int:
        """Number of connected fragments (0 for an empty molecule)."""
        import networkx as nx

        if not self.atoms:
            return 0
        return nx.number_connected_components(self.to_graph())

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------

    def clone(self, new_id: bool = False) -> "Molecule":
        """
        Independent deep copy.

        Atoms and bonds are copied, never shared.  With new_id=True the copy
        gets a fresh molecule id (atom and bond ids are kept).
        """
        copy = self.model_copy(deep=True)
        if new_id:
            copy.id = _new_id()
        return copy

    def with_fitness(self, fitness: float) -> "Molecule":
        """Return a copy with the fitness set."""
        return self.model_copy(update={"fitness": float(fitness)}, deep=True)

    def __repr__(self) -> str:
        return (
            f"Molecule(id={self.id[:8]}…, formula={self.formula}, "
            f"atoms={len(self.atoms)}, bonds={len(self.bonds)}, "
            f"fitness={self.fitness:.4f})"
        )
