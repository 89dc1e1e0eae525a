"""
molevo/structure/catalog.py

Static per-element metadata used throughout molevo.

The catalog is the only place that knows how many bonds an element may
form (its "valence") and how heavy it is.  It is built once at import time
and never mutated.

Implicit hydrogens
------------------
Random atom creation (initial molecules and mutations) draws only from
carbon, oxygen and nitrogen.  Hydrogen stays in the catalog so that a
hand-built seed molecule containing explicit H atoms still gets a sensible
molecular weight, formula and valence check.

Usage
-----
    from molevo.structure.catalog import ATOM_CATALOG, ELEMENT, max_valence

    max_valence(ELEMENT.N)          # 3
    ATOM_CATALOG[ELEMENT.O].mass    # 16.0
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


# ---------------------------------------------------------------------------
# Element constants
# ---------------------------------------------------------------------------

class ELEMENT:
    """
    Namespace of valid element symbols.

    Plain strings compare cleanly against YAML, JSON and user input, so no
    Enum is used here.
    """
    C = "C"
    H = "H"
    O = "O"
    N = "N"

    @classmethod
    def all(cls) -> list[str]:
        return [cls.C, cls.H, cls.O, cls.N]

    @classmethod
    def random_pool(cls) -> list[str]:
        """Elements that random generation and mutation may create."""
        return [cls.C, cls.O, cls.N]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AtomType:
    """Read-only description of one element."""

    symbol: str
    name: str
    max_valence: int
    color: str
    mass: float


ATOM_CATALOG: MappingProxyType[str, AtomType] = MappingProxyType({
    ELEMENT.C: AtomType(ELEMENT.C, "Carbon",   4, "#4A5568", 12.0),
    ELEMENT.H: AtomType(ELEMENT.H, "Hydrogen", 1, "#E2E8F0", 1.0),
    ELEMENT.O: AtomType(ELEMENT.O, "Oxygen",   2, "#EF4444", 16.0),
    ELEMENT.N: AtomType(ELEMENT.N, "Nitrogen", 3, "#3B82F6", 14.0),
})


def max_valence(symbol: str) -> int:
    """Maximum number of bonds an atom of this element may carry."""
    return ATOM_CATALOG[symbol].max_valence


def atomic_mass(symbol: str) -> float:
    """Atomic mass in Da; unknown symbols weigh nothing."""
    atom_type = ATOM_CATALOG.get(symbol)
    return atom_type.mass if atom_type is not None else 0.0
