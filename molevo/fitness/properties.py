"""
molevo/fitness/properties.py

Fitness functions: one scoring rule per target property.

Every rule is a pure function of (molecule, goals) → float.  There is no
randomness and no caching, so the same molecule always gets the same score.

Target properties
-----------------
    MAXIMIZE_ATOM_C / _O / _N           count of that element
    MAXIMIZE_BONDS                      number of bonds
    MINIMIZE_DISCONNECTED_COMPONENTS    n_atoms / max(1, n_components)
    TARGET_MOLECULAR_WEIGHT             100 / (1 + |MW - goal|)
    TARGET_MOLECULAR_WEIGHT_RANGE       100 inside [min, max], else
                                        100 - distance outside, floored at 0
    STABILITY_SCORE_MAXIMIZE            mean per-atom valence score + 5,
                                        floored at 0
    COUNT_HYDROXYL_GROUPS_MAXIMIZE      terminal oxygens (-OH like)
    COUNT_AMINE_GROUPS_MAXIMIZE         partially bonded nitrogens (-NHx like)
    LIPINSKI_RULE_OF_FIVE_SCORE_MAXIMIZE  0-3 rule-of-five points

Stability points per atom
-------------------------
    valence == max      +2
    valence <  max      +0.5
    valence >  max      -2 × excess

Whatever the rule returns, compute_fitness() maps NaN to 0 and clamps the
score to [FITNESS_MIN, FITNESS_MAX].

Extending
---------
Write a function `(molecule, goals) -> float`, add a TARGET constant and
register the function in FITNESS_REGISTRY at the bottom of this file.

Usage
-----
    from molevo.fitness.properties import TARGET, compute_fitness

    score = compute_fitness(mol, TARGET.TARGET_MOLECULAR_WEIGHT)
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable

from pydantic import BaseModel, model_validator

from molevo.structure.catalog import ELEMENT, max_valence
from molevo.structure.molecule import Molecule


FITNESS_MIN: float = -1000.0
FITNESS_MAX: float = 1000.0


# ---------------------------------------------------------------------------
# Target property constants
# ---------------------------------------------------------------------------

class TARGET:
    """Namespace of valid target property strings."""
    MAXIMIZE_ATOM_C                      = "MAXIMIZE_ATOM_C"
    MAXIMIZE_ATOM_O                      = "MAXIMIZE_ATOM_O"
    MAXIMIZE_ATOM_N                      = "MAXIMIZE_ATOM_N"
    MAXIMIZE_BONDS                       = "MAXIMIZE_BONDS"
    MINIMIZE_DISCONNECTED_COMPONENTS     = "MINIMIZE_DISCONNECTED_COMPONENTS"
    TARGET_MOLECULAR_WEIGHT              = "TARGET_MOLECULAR_WEIGHT"
    TARGET_MOLECULAR_WEIGHT_RANGE        = "TARGET_MOLECULAR_WEIGHT_RANGE"
    STABILITY_SCORE_MAXIMIZE             = "STABILITY_SCORE_MAXIMIZE"
    COUNT_HYDROXYL_GROUPS_MAXIMIZE       = "COUNT_HYDROXYL_GROUPS_MAXIMIZE"
    COUNT_AMINE_GROUPS_MAXIMIZE          = "COUNT_AMINE_GROUPS_MAXIMIZE"
    LIPINSKI_RULE_OF_FIVE_SCORE_MAXIMIZE = "LIPINSKI_RULE_OF_FIVE_SCORE_MAXIMIZE"

    @classmethod
    def all(cls) -> list[str]:
        return list(TARGET_DESCRIPTIONS)

    @classmethod
    def validate(cls, value: str) -> str:
        if value not in TARGET_DESCRIPTIONS:
            raise ValueError(
                f"target property must be one of {cls.all()}, got '{value}'."
            )
        return value


# ---------------------------------------------------------------------------
# Goal constants
# ---------------------------------------------------------------------------

class FitnessGoals(BaseModel):
    """
    Numeric goals read by the weight-target and Lipinski rules.

    Defaults are the values the simulator has always shipped with.
    """

    target_weight: float = 50.0
    weight_range_min: float = 40.0
    weight_range_max: float = 120.0
    lipinski_max_weight: float = 500.0
    lipinski_max_donors: int = 5
    lipinski_max_acceptors: int = 10

    @model_validator(mode="after")
    def _range_ordered(self) -> "FitnessGoals":
        if self.weight_range_min > self.weight_range_max:
            raise ValueError(
                f"weight_range_min ({self.weight_range_min}) must be <= "
                f"weight_range_max ({self.weight_range_max})."
            )
        return self


DEFAULT_GOALS = FitnessGoals()


def describe_target(target_property: str, goals: FitnessGoals | None = None) -> str:
    """Human-readable description of a target, with the goal values filled in."""
    goals = goals or DEFAULT_GOALS
    return TARGET_DESCRIPTIONS[TARGET.validate(target_property)].format(g=goals)


TARGET_DESCRIPTIONS: dict[str, str] = {
    TARGET.MAXIMIZE_ATOM_C:
        "Evolve molecules with the highest number of Carbon atoms.",
    TARGET.MAXIMIZE_ATOM_O:
        "Evolve molecules with the highest number of Oxygen atoms.",
    TARGET.MAXIMIZE_ATOM_N:
        "Evolve molecules with the highest number of Nitrogen atoms.",
    TARGET.MAXIMIZE_BONDS:
        "Evolve molecules with the maximum number of bonds.",
    TARGET.MINIMIZE_DISCONNECTED_COMPONENTS:
        "Evolve large molecules made of as few separate fragments as possible.",
    TARGET.TARGET_MOLECULAR_WEIGHT:
        "Evolve molecules with a molecular weight as close as possible "
        "to {g.target_weight:g} Da.",
    TARGET.TARGET_MOLECULAR_WEIGHT_RANGE:
        "Evolve molecules with a molecular weight between "
        "{g.weight_range_min:g} and {g.weight_range_max:g} Da.",
    TARGET.STABILITY_SCORE_MAXIMIZE:
        "Evolve molecules whose atoms fill their valences "
        "(filled is rewarded, over-bonded is penalised).",
    TARGET.COUNT_HYDROXYL_GROUPS_MAXIMIZE:
        "Evolve molecules with more (approximate) hydroxyl (-OH) groups.",
    TARGET.COUNT_AMINE_GROUPS_MAXIMIZE:
        "Evolve molecules with more (approximate) amine (-NHx) groups.",
    TARGET.LIPINSKI_RULE_OF_FIVE_SCORE_MAXIMIZE:
        "Evolve drug-like molecules scored on Lipinski's rule of five "
        "(MW <= {g.lipinski_max_weight:g}, H-donors <= {g.lipinski_max_donors}, "
        "H-acceptors <= {g.lipinski_max_acceptors}).",
}


# ---------------------------------------------------------------------------
# Structural descriptors
# ---------------------------------------------------------------------------

def hydroxyl_count(molecule: Molecule) -> int:
    """Oxygens with a single bond whose element allows two (terminal -OH)."""
    return sum(
        1 for a in molecule.atoms
        if a.element == ELEMENT.O
        and molecule.valence(a.id) == 1
        and max_valence(a.element) == 2
    )


def amine_count(molecule: Molecule) -> int:
    """Nitrogens that are bonded but not saturated."""
    return sum(
        1 for a in molecule.atoms
        if a.element == ELEMENT.N
        and 0 < molecule.valence(a.id) < max_valence(a.element)
    )


def h_donor_count(molecule: Molecule) -> int:
    """
    Estimated hydrogen-bond donors.

    One per hydroxyl-pattern oxygen, plus the valence deficit of every
    bonded, unsaturated nitrogen (the number of implicit N-H).
    """
    donors = hydroxyl_count(molecule)
    for atom in molecule.atoms:
        if atom.element != ELEMENT.N:
            continue
        v = molecule.valence(atom.id)
        if 0 < v < atom.max_valence:
            donors += atom.max_valence - v
    return donors


def h_acceptor_count(molecule: Molecule) -> int:
    """All oxygens and nitrogens."""
    return molecule.count(ELEMENT.O) + molecule.count(ELEMENT.N)


def stability_score(molecule: Molecule) -> float:
    if not molecule.atoms:
        return 0.0
    total = 0.0
    for atom in molecule.atoms:
        v = molecule.valence(atom.id)
        limit = atom.max_valence
        if v == limit:
            total += 2.0
        elif v < limit:
            total += 0.5
        else:
            total -= (v - limit) * 2.0
    return max(0.0, total / len(molecule.atoms) + 5.0)


def lipinski_score(molecule: Molecule, goals: FitnessGoals | None = None) -> int:
    """Number of satisfied rule-of-five criteria (0-3)."""
    goals = goals or DEFAULT_GOALS
    score = 0
    if molecule.molecular_weight <= goals.lipinski_max_weight:
        score += 1
    if h_donor_count(molecule) <= goals.lipinski_max_donors:
        score += 1
    if h_acceptor_count(molecule) <= goals.lipinski_max_acceptors:
        score += 1
    return score


# ---------------------------------------------------------------------------
# Per-target rules
# ---------------------------------------------------------------------------

def _components_score(molecule: Molecule, goals: FitnessGoals) -> float:
    if not molecule.atoms:
        return 0.0
    return len(molecule.atoms) / max(1, molecule.n_components)


def _weight_point_score(molecule: Molecule, goals: FitnessGoals) -> float:
    return 100.0 / (1.0 + abs(molecule.molecular_weight - goals.target_weight))


def _weight_range_score(molecule: Molecule, goals: FitnessGoals) -> float:
    mw = molecule.molecular_weight
    lo, hi = goals.weight_range_min, goals.weight_range_max
    if lo <= mw <= hi:
        return 100.0
    distance = lo - mw if mw < lo else mw - hi
    return max(0.0, 100.0 - distance)


FitnessRule = Callable[[Molecule, FitnessGoals], float]

FITNESS_REGISTRY: dict[str, FitnessRule] = {
    TARGET.MAXIMIZE_ATOM_C: lambda m, g: m.count(ELEMENT.C),
    TARGET.MAXIMIZE_ATOM_O: lambda m, g: m.count(ELEMENT.O),
    TARGET.MAXIMIZE_ATOM_N: lambda m, g: m.count(ELEMENT.N),
    TARGET.MAXIMIZE_BONDS: lambda m, g: len(m.bonds),
    TARGET.MINIMIZE_DISCONNECTED_COMPONENTS: _components_score,
    TARGET.TARGET_MOLECULAR_WEIGHT: _weight_point_score,
    TARGET.TARGET_MOLECULAR_WEIGHT_RANGE: _weight_range_score,
    TARGET.STABILITY_SCORE_MAXIMIZE: lambda m, g: stability_score(m),
    TARGET.COUNT_HYDROXYL_GROUPS_MAXIMIZE: lambda m, g: hydroxyl_count(m),
    TARGET.COUNT_AMINE_GROUPS_MAXIMIZE: lambda m, g: amine_count(m),
    TARGET.LIPINSKI_RULE_OF_FIVE_SCORE_MAXIMIZE: lipinski_score,
}


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def clamp_fitness(value: float) -> float:
    """NaN → 0, then clamp into [FITNESS_MIN, FITNESS_MAX]."""
    value = float(value)
    if math.isnan(value):
        return 0.0
    return max(FITNESS_MIN, min(FITNESS_MAX, value))


def compute_fitness(
    molecule: Molecule,
    target_property: str,
    goals: FitnessGoals | None = None,
) -> float:
    """
    Score a molecule under a target property.

    Parameters
    ----------
    molecule:
        The molecule to score.  Not modified.
    target_property:
        One of the TARGET constants.
    goals:
        Goal values for the weight and Lipinski rules.  DEFAULT_GOALS if None.

    Returns
    -------
    float
        Score in [FITNESS_MIN, FITNESS_MAX]; 0 if the rule produced NaN.

    Raises
    ------
    ValueError
        If target_property is not a known TARGET.
    """
    rule = FITNESS_REGISTRY.get(target_property)
    if rule is None:
        raise ValueError(
            f"Unknown target property '{target_property}'. "
            f"Known: {TARGET.all()}"
        )
    return clamp_fitness(rule(molecule, goals or DEFAULT_GOALS))


def evaluate_population(
    molecules: Iterable[Molecule],
    target_property: str,
    goals: FitnessGoals | None = None,
) -> list[Molecule]:
    """Return copies of the molecules with fitness set."""
    return [
        m.with_fitness(compute_fitness(m, target_property, goals))
        for m in molecules
    ]
