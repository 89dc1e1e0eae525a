"""
molevo/population/population.py

Parent selection for the generation loop.

Selection
---------
1.  Elitism: the top `elitism_count` molecules by descending fitness are
    taken first.  The sort is stable, so among equal scores the earlier
    molecule in the input wins.
2.  Tournaments: the rest of the parent list is filled by 3-way tournament
    selection.  Each tournament draws `tournament_size` molecules uniformly
    with replacement from the whole population and keeps the fittest
    (first drawn wins a tie).

The parent list always has the same length as the population.  Parents are
returned by reference; the caller clones or mutates them, never edits them.

Public API
----------
    rank_population(population)                       → list[Molecule]
    tournament(population, size, rng)                 → Molecule
    select_parents(population, elitism_count, rng)    → list[Molecule]
    population_statistics(population)                 → (best, average)
"""

from __future__ import annotations

import math

import numpy as np

from molevo.structure.molecule import Molecule

#: Number of contenders per tournament.
TOURNAMENT_SIZE: int = 3


def rank_population(population: list[Molecule]) -> list[Molecule]:
    """Stable sort by descending fitness."""
    # reverse=True keeps equal elements in their original order
    return sorted(population, key=lambda m: m.fitness, reverse=True)


def tournament(
    population: list[Molecule],
    size: int = TOURNAMENT_SIZE,
    rng: np.random.Generator | None = None,
) -> Molecule:
    """
    Run one tournament and return the winner.

    Raises
    ------
    ValueError
        If the population is empty.
    """
    if not population:
        raise ValueError("Cannot run a tournament on an empty population.")
    if rng is None:
        rng = np.random.default_rng()

    best: Molecule | None = None
    for _ in range(size):
        contender = population[int(rng.integers(len(population)))]
        if best is None or contender.fitness > best.fitness:
            best = contender
    return best


def select_parents(
    population: list[Molecule],
    elitism_count: int,
    rng: np.random.Generator | None = None,
    tournament_size: int = TOURNAMENT_SIZE,
) -> list[Molecule]:
    """
    Select a parent list the same length as the population.

    Parameters
    ----------
    population:
        Evaluated molecules.
    elitism_count:
        Number of top molecules placed at the head of the list unchanged.
        Clipped to the population size.
    rng:
        NumPy random generator.
    tournament_size:
        Contenders per tournament for the remaining slots.

    Returns
    -------
    list[Molecule]
        Elites first (in rank order), then tournament winners.
        Empty for an empty population.
    """
    if not population:
        return []
    if rng is None:
        rng = np.random.default_rng()

    ranked = rank_population(population)
    parents = ranked[:max(0, min(elitism_count, len(ranked)))]

    while len(parents) < len(population):
        parents.append(tournament(population, tournament_size, rng))
    return parents


def population_statistics(population: list[Molecule]) -> tuple[float, float]:
    """
    Best and average fitness of a population.

    Both are 0 for an empty population; a non-finite average is reported
    as 0.
    """
    if not population:
        return 0.0, 0.0
    values = np.array([m.fitness for m in population], dtype=float)
    best = float(values.max())
    average = float(values.mean())
    if not math.isfinite(average):
        average = 0.0
    return best, average
