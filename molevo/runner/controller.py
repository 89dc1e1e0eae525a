"""
molevo/runner/controller.py

The evolution controller: owns all simulation state and drives the
generation loop.

State machine
-------------
    idle ──start / start_from_seed──▶ running ──pause──▶ paused
      ▲                                 │  ▲               │
      │                                 │  └────resume─────┘
      │                 generation >= max_generations      │ (resume when
      │                                 ▼                  │  generation >=
      └──────────reset (any state)── completed ◀───────────┘  max_generations)

start / start_from_seed are accepted from any state and restart the run.

Generation step (one scheduler tick while running)
--------------------------------------------------
1.  Rank the evaluated population by descending fitness (stable).
2.  Replace the stored best molecule only if this generation's top is
    strictly better.  The stored best never regresses.
3.  Append (generation, best, average) to the fitness history.
4.  If generation >= max_generations: mark completed and stop.
5.  Otherwise select parents, copy the top elitism_count parents unmutated,
    fill the rest with mutated offspring of uniformly chosen parents,
    evaluate everything and advance the generation index by one.

An empty population found while running is replaced by a fresh random one.
A step that raises is logged and ends the run as completed, so wait()
returns instead of blocking on a scheduler that has already stopped.

Threading
---------
All state is guarded by one re-entrant lock.  Steps run on the scheduler's
thread; commands run on the caller's.  Every command that ends or replaces
a run bumps a run epoch before the scheduler is restarted, and a scheduled
step whose epoch is stale returns without touching anything.  Observers get
a fresh EvolutionState snapshot after every state change, delivered outside
the lock.

Usage
-----
    from molevo.runner.controller import EvolutionController

    ctl = EvolutionController(params, TARGET.MAXIMIZE_BONDS)
    ctl.subscribe(lambda state: print(state.generation, state.status))
    ctl.start()
    ctl.wait()
    print(ctl.snapshot().best)
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from typing import Any

import numpy as np
from pydantic import BaseModel, Field

from molevo.config import DEFAULT_TARGET_PROPERTY, EvolutionParams
from molevo.fitness.properties import TARGET, FitnessGoals, evaluate_population
from molevo.operators.mutation import mutate
from molevo.population.factory import build_random_population
from molevo.population.population import (
    population_statistics,
    rank_population,
    select_parents,
)
from molevo.scheduler.base import StepScheduler
from molevo.scheduler.local import ThreadScheduler
from molevo.structure.molecule import Molecule

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Status constants
# ---------------------------------------------------------------------------

class STATUS:
    """Namespace of run status strings."""
    IDLE      = "idle"
    RUNNING   = "running"
    PAUSED    = "paused"
    COMPLETED = "completed"

    @classmethod
    def all(cls) -> set[str]:
        return {cls.IDLE, cls.RUNNING, cls.PAUSED, cls.COMPLETED}


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

class FitnessRecord(BaseModel):
    """One fitness-history entry, appended per recorded generation."""

    generation: int
    best_fitness: float
    average_fitness: float


class EvolutionState(BaseModel):
    """
    Read-only snapshot of the controller.

    Molecules are deep copies; editing a snapshot never affects the run.
    """

    params: EvolutionParams
    target_property: str
    goals: FitnessGoals
    population: list[Molecule] = Field(default_factory=list)
    generation: int = 0
    best: Molecule | None = None
    history: list[FitnessRecord] = Field(default_factory=list)
    status: str = STATUS.IDLE

    @property
    def is_running(self) -> bool:
        return self.status == STATUS.RUNNING


Subscriber = Callable[[EvolutionState], Any]


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class EvolutionController:
    """
    Owner of the population, history, best molecule and run status.

    Parameters
    ----------
    params:
        Evolution hyperparameters.  Defaults to EvolutionParams().
    target_property:
        TARGET constant to optimise.
    goals:
        Goal values for the weight and Lipinski targets.
    scheduler:
        StepScheduler driving the generation loop.  A ThreadScheduler with
        the default 50 ms interval if None.
    rng:
        NumPy random generator shared by generation, selection and mutation.
    """

    def __init__(
        self,
        params: EvolutionParams | None = None,
        target_property: str = DEFAULT_TARGET_PROPERTY,
        goals: FitnessGoals | None = None,
        scheduler: StepScheduler | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self._params = params or EvolutionParams()
        self._target = TARGET.validate(target_property)
        self._goals = goals or FitnessGoals()
        self._scheduler = scheduler if scheduler is not None else ThreadScheduler()
        self._rng = rng if rng is not None else np.random.default_rng()

        self._lock = threading.RLock()
        self._status_changed = threading.Condition(self._lock)
        self._subscribers: list[Subscriber] = []

        self._population: list[Molecule] = []
        self._generation = 0
        self._best: Molecule | None = None
        self._history: list[FitnessRecord] = []
        self._status = STATUS.IDLE
        self._epoch = 0

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        return self._status

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def params(self) -> EvolutionParams:
        return self._params

    @property
    def target_property(self) -> str:
        return self._target

    @property
    def scheduler(self) -> StepScheduler:
        return self._scheduler

    def snapshot(self) -> EvolutionState:
        """Consistent deep copy of the full state."""
        with self._lock:
            return EvolutionState(
                params=self._params.model_copy(),
                target_property=self._target,
                goals=self._goals.model_copy(),
                population=[m.clone() for m in self._population],
                generation=self._generation,
                best=self._best.clone() if self._best is not None else None,
                history=[r.model_copy() for r in self._history],
                status=self._status,
            )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register an observer called with a snapshot after every change.

        Returns a function that removes the observer again.
        """
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the controller is no longer running.

        Returns False if the timeout expired first.
        """
        with self._status_changed:
            return self._status_changed.wait_for(
                lambda: self._status != STATUS.RUNNING, timeout
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start a fresh run from a random population."""
        self._scheduler.stop()
        with self._lock:
            self._epoch += 1
            self._clear_run()
            self._population = self._evaluate(
                build_random_population(
                    self._params.population_size,
                    self._params.max_atoms_per_molecule,
                    self._rng,
                )
            )
            self._set_status(STATUS.RUNNING)
            epoch = self._epoch
            logger.info(
                f"Run started: target={self._target}  "
                f"population={self._params.population_size}  "
                f"max_generations={self._params.max_generations}"
            )
        self._schedule(epoch)
        self._notify()

    def start_from_seed(self, seed: Molecule | None) -> None:
        """
        Start a fresh run from one template molecule.

        The population is the seed plus population_size - 1 offspring
        mutated at twice the configured rate.  A missing or empty seed is
        ignored.
        """
        if seed is None or not seed.atoms:
            logger.info("Seeded start ignored: seed molecule has no atoms.")
            return

        self._scheduler.stop()
        with self._lock:
            self._epoch += 1
            self._clear_run()
            template = seed.clone()
            raw = [template.clone()]
            for _ in range(self._params.population_size - 1):
                raw.append(
                    mutate(
                        template,
                        self._params.mutation_rate * 2,
                        self._params.max_atoms_per_molecule,
                        self._rng,
                    )
                )
            self._population = self._evaluate(raw)
            self._best = rank_population(self._population)[0].clone()
            self._set_status(STATUS.RUNNING)
            epoch = self._epoch
            logger.info(
                f"Seeded run started from {seed.formula} "
                f"(population={len(self._population)}, target={self._target})"
            )
        self._schedule(epoch)
        self._notify()

    def pause(self) -> None:
        """Pause a running simulation; no-op in any other state."""
        with self._lock:
            if self._status != STATUS.RUNNING:
                logger.debug(f"pause() ignored in state '{self._status}'")
                return
            self._epoch += 1
            self._set_status(STATUS.PAUSED)
            logger.info(f"Run paused at generation {self._generation}")
        self._scheduler.stop()
        self._notify()

    def resume(self) -> None:
        """
        Resume a paused simulation.

        If the generation limit has already been reached the run is marked
        completed instead.  No-op unless paused.
        """
        epoch = None
        with self._lock:
            if self._status != STATUS.PAUSED:
                logger.debug(f"resume() ignored in state '{self._status}'")
                return
            if self._generation >= self._params.max_generations:
                self._set_status(STATUS.COMPLETED)
                logger.info("Resume requested after the generation limit; run completed")
            else:
                self._epoch += 1
                epoch = self._epoch
                self._set_status(STATUS.RUNNING)
                logger.info(f"Run resumed at generation {self._generation}")
        if epoch is not None:
            self._schedule(epoch)
        self._notify()

    def reset(
        self,
        params: EvolutionParams | None = None,
        target_property: str | None = None,
        goals: FitnessGoals | None = None,
    ) -> None:
        """
        Return to idle, optionally installing new settings.

        Population, history and best molecule are discarded.  Arguments left
        as None keep their current value.
        """
        if target_property is not None:
            target_property = TARGET.validate(target_property)
        self._scheduler.stop()
        with self._lock:
            self._epoch += 1
            if params is not None:
                self._params = params
            if target_property is not None:
                self._target = target_property
            if goals is not None:
                self._goals = goals
            self._clear_run()
            self._set_status(STATUS.IDLE)
            logger.info("Controller reset")
        self._notify()

    def update_params(self, key: str, value: Any) -> None:
        """
        Change one evolution parameter.

        Takes effect from the next generation step.

        Raises
        ------
        KeyError
            If `key` is not an EvolutionParams field.
        pydantic.ValidationError
            If the new value is out of range.
        """
        if key not in EvolutionParams.model_fields:
            raise KeyError(
                f"Unknown evolution parameter '{key}'. "
                f"Known: {sorted(EvolutionParams.model_fields)}"
            )
        with self._lock:
            self._params = EvolutionParams.model_validate(
                {**self._params.model_dump(), key: value}
            )
            logger.debug(f"Parameter {key} set to {value!r}")
        self._notify()

    def update_target_property(self, target_property: str) -> None:
        """
        Switch the optimisation target.

        The current population and stored best are re-scored so every
        fitness value refers to the new target.
        """
        target_property = TARGET.validate(target_property)
        with self._lock:
            self._target = target_property
            self._population = self._evaluate(self._population)
            if self._best is not None:
                self._best = self._evaluate([self._best])[0]
            logger.info(f"Target property set to {target_property}")
        self._notify()

    def step(self) -> bool:
        """
        Run one generation step now, if running.

        Returns True if the controller is still running afterwards.
        """
        return self._run_step(epoch=None)

    def shutdown(self) -> None:
        """Stop the scheduler without changing any state."""
        self._scheduler.stop()

    def __enter__(self) -> "EvolutionController":
        return self

    def __exit__(self, *_) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _schedule(self, epoch: int) -> None:
        self._scheduler.start(functools.partial(self._run_step, epoch))

    def _run_step(self, epoch: int | None) -> bool:
        with self._lock:
            if epoch is not None and epoch != self._epoch:
                return False
            if self._status != STATUS.RUNNING:
                return False
            try:
                self._advance()
            except Exception:
                logger.exception(
                    f"Generation step {self._generation} failed; ending the run"
                )
                self._epoch += 1
                self._set_status(STATUS.COMPLETED)
            running = self._status == STATUS.RUNNING
        self._notify()
        return running

    def _advance(self) -> None:
        """One generation step.  Caller holds the lock."""
        params = self._params

        if not self._population:
            logger.info("Population empty while running; building a new random population")
            self._population = self._evaluate(
                build_random_population(
                    params.population_size, params.max_atoms_per_molecule, self._rng
                )
            )
            return

        ranked = rank_population(self._population)
        top = ranked[0]
        if self._best is None or top.fitness > self._best.fitness:
            self._best = top.clone()

        _, average = population_statistics(ranked)
        self._history.append(
            FitnessRecord(
                generation=self._generation,
                best_fitness=top.fitness,
                average_fitness=average,
            )
        )
        logger.debug(
            f"Generation {self._generation}: best={top.fitness:.4f}  avg={average:.4f}"
        )

        if self._generation >= params.max_generations:
            self._set_status(STATUS.COMPLETED)
            logger.info(
                f"Run completed at generation {self._generation}: "
                f"best fitness {self._best.fitness:.4f}"
            )
            return

        parents = select_parents(ranked, params.elitism_count, self._rng)
        n_elite = min(params.elitism_count, len(parents), params.population_size)
        offspring = [p.clone() for p in parents[:n_elite]]
        while len(offspring) < params.population_size:
            parent = parents[int(self._rng.integers(len(parents)))]
            offspring.append(
                mutate(parent, params.mutation_rate, params.max_atoms_per_molecule, self._rng)
            )

        self._population = self._evaluate(offspring)
        self._generation += 1

    def _evaluate(self, molecules: list[Molecule]) -> list[Molecule]:
        return evaluate_population(molecules, self._target, self._goals)

    def _clear_run(self) -> None:
        self._population = []
        self._generation = 0
        self._best = None
        self._history = []

    def _set_status(self, status: str) -> None:
        self._status = status
        self._status_changed.notify_all()

    def _notify(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        if not subscribers:
            return
        state = self.snapshot()
        for callback in subscribers:
            try:
                callback(state)
            except Exception:
                logger.exception(f"State subscriber {callback!r} raised")
