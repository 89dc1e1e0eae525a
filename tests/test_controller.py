"""
tests/test_controller.py

Tests for the evolution controller state machine and generation step.

Most tests drive the controller with a ManualScheduler: every
scheduler.tick() runs exactly one generation step on the test thread.
"""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from molevo.config import EvolutionParams
from molevo.fitness.properties import TARGET
from molevo.runner.controller import STATUS, EvolutionController
from molevo.scheduler.local import ManualScheduler, ThreadScheduler


def _best_values(states):
    return [s.best.fitness for s in states if s.best is not None]


# ===========================================================================
# Lifecycle
# ===========================================================================

class TestStart:

    def test_initial_state(self, manual_controller):
        state = manual_controller.snapshot()
        assert state.status == STATUS.IDLE
        assert state.population == []
        assert state.generation == 0
        assert state.best is None
        assert state.history == []

    def test_start_builds_evaluated_population(self, manual_controller, small_params):
        manual_controller.start()
        state = manual_controller.snapshot()
        assert state.status == STATUS.RUNNING
        assert len(state.population) == small_params.population_size
        for mol in state.population:
            assert mol.fitness == len(mol.bonds)
        assert manual_controller.scheduler.active

    def test_tick_advances_one_generation(self, manual_controller):
        manual_controller.start()
        for expected in (1, 2, 3):
            manual_controller.scheduler.tick()
            assert manual_controller.generation == expected

    def test_population_size_constant(self, manual_controller, small_params):
        manual_controller.start()
        for _ in range(small_params.max_generations):
            manual_controller.scheduler.tick()
            assert len(manual_controller.snapshot().population) == small_params.population_size

    def test_restart_discards_previous_run(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.tick()
        manual_controller.scheduler.tick()
        manual_controller.start()
        state = manual_controller.snapshot()
        assert state.generation == 0
        assert state.history == []
        assert state.status == STATUS.RUNNING


class TestCompletion:

    def test_completes_exactly_at_max_generations(self, manual_controller, small_params):
        manual_controller.start()
        ticks = manual_controller.scheduler.run_until_stopped(max_ticks=100)
        state = manual_controller.snapshot()
        assert state.status == STATUS.COMPLETED
        assert state.generation == small_params.max_generations
        assert ticks == small_params.max_generations + 1
        assert [r.generation for r in state.history] == list(
            range(small_params.max_generations + 1)
        )
        assert not manual_controller.scheduler.active

    def test_zero_generations_completes_on_first_step(self, small_params):
        params = small_params.model_copy(update={"max_generations": 0})
        ctl = EvolutionController(
            params, TARGET.MAXIMIZE_BONDS,
            scheduler=ManualScheduler(), rng=np.random.default_rng(1),
        )
        ctl.start()
        ctl.scheduler.tick()
        state = ctl.snapshot()
        assert state.status == STATUS.COMPLETED
        assert state.generation == 0
        assert len(state.history) == 1
        assert state.best is not None

    def test_step_is_ignored_after_completion(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped()
        before = manual_controller.snapshot()
        assert manual_controller.step() is False
        assert manual_controller.snapshot().history == before.history

    def test_history_matches_population(self, manual_controller):
        manual_controller.start()
        first_population = manual_controller.snapshot().population
        manual_controller.scheduler.tick()
        record = manual_controller.snapshot().history[0]
        fitness = [m.fitness for m in first_population]
        assert record.generation == 0
        assert record.best_fitness == pytest.approx(max(fitness))
        assert record.average_fitness == pytest.approx(np.mean(fitness))


class TestBestMolecule:

    def test_best_never_regresses(self, manual_controller):
        states = []
        manual_controller.subscribe(states.append)
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped()
        values = _best_values(states)
        assert values
        assert values == sorted(values)

    def test_best_at_least_every_recorded_top(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped()
        state = manual_controller.snapshot()
        assert state.best.fitness >= max(r.best_fitness for r in state.history)

    def test_elites_survive_unmutated(self, manual_controller):
        manual_controller.start()
        before = sorted(
            manual_controller.snapshot().population,
            key=lambda m: m.fitness, reverse=True,
        )
        manual_controller.scheduler.tick()
        after = {m.id: m for m in manual_controller.snapshot().population}
        for elite in before[:2]:
            assert elite.id in after
            assert after[elite.id].atoms == elite.atoms
            assert after[elite.id].bonds == elite.bonds

    def test_molecules_stay_valid(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped()
        for mol in manual_controller.snapshot().population:
            assert mol.check_integrity() == []
            assert mol.over_valent_atoms() == []
            assert len(mol.atoms) <= manual_controller.params.max_atoms_per_molecule


# ===========================================================================
# Pause / resume / reset
# ===========================================================================

class TestPauseResume:

    def test_pause_stops_stepping(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.tick()
        manual_controller.pause()
        assert manual_controller.status == STATUS.PAUSED
        assert not manual_controller.scheduler.active
        assert manual_controller.scheduler.tick() is False
        assert manual_controller.generation == 1

    def test_resume_continues(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.tick()
        manual_controller.pause()
        manual_controller.resume()
        assert manual_controller.status == STATUS.RUNNING
        manual_controller.scheduler.tick()
        assert manual_controller.generation == 2

    def test_pause_when_idle_is_noop(self, manual_controller):
        manual_controller.pause()
        assert manual_controller.status == STATUS.IDLE

    def test_resume_when_running_is_noop(self, manual_controller):
        manual_controller.start()
        callback = manual_controller.scheduler._callback
        manual_controller.resume()
        assert manual_controller.scheduler._callback is callback

    def test_resume_after_limit_completes(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.tick()
        manual_controller.scheduler.tick()
        manual_controller.pause()
        manual_controller.update_params("max_generations", 1)
        manual_controller.resume()
        assert manual_controller.status == STATUS.COMPLETED
        assert not manual_controller.scheduler.active

    def test_stale_step_is_ignored(self, manual_controller):
        manual_controller.start()
        stale = manual_controller.scheduler._callback
        manual_controller.pause()
        manual_controller.resume()
        generation = manual_controller.generation
        assert stale() is False
        assert manual_controller.generation == generation
        # the current callback still works
        manual_controller.scheduler.tick()
        assert manual_controller.generation == generation + 1


class TestReset:

    def test_reset_after_start(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.tick()
        manual_controller.reset()
        state = manual_controller.snapshot()
        assert state.status == STATUS.IDLE
        assert state.population == []
        assert state.generation == 0
        assert state.best is None
        assert state.history == []
        assert not manual_controller.scheduler.active

    def test_reset_installs_new_settings(self, manual_controller):
        params = EvolutionParams(population_size=3, max_generations=1)
        manual_controller.reset(params=params, target_property=TARGET.MAXIMIZE_ATOM_O)
        assert manual_controller.params == params
        assert manual_controller.target_property == TARGET.MAXIMIZE_ATOM_O
        manual_controller.start()
        assert len(manual_controller.snapshot().population) == 3

    def test_reset_rejects_unknown_target(self, manual_controller):
        with pytest.raises(ValueError):
            manual_controller.reset(target_property="NOPE")

    def test_reset_from_completed(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped()
        manual_controller.reset()
        assert manual_controller.status == STATUS.IDLE


# ===========================================================================
# Seeded start
# ===========================================================================

class TestSeededStart:

    def test_population_grown_from_seed(self, manual_controller, propane_skeleton, small_params):
        manual_controller.start_from_seed(propane_skeleton)
        state = manual_controller.snapshot()
        assert state.status == STATUS.RUNNING
        assert len(state.population) == small_params.population_size
        first = state.population[0]
        assert first.atom_ids == propane_skeleton.atom_ids
        assert first.fitness == 2
        assert state.best is not None
        assert state.best.fitness == max(m.fitness for m in state.population)

    def test_seed_is_not_modified(self, manual_controller, propane_skeleton):
        before = propane_skeleton.model_dump()
        manual_controller.start_from_seed(propane_skeleton)
        manual_controller.scheduler.run_until_stopped()
        assert propane_skeleton.model_dump() == before

    @pytest.mark.parametrize("seed", [None, "empty"])
    def test_missing_seed_is_ignored(self, manual_controller, make_molecule, seed):
        seed = make_molecule([]) if seed == "empty" else None
        manual_controller.start_from_seed(seed)
        assert manual_controller.status == STATUS.IDLE
        assert not manual_controller.scheduler.active

    def test_offspring_mutated_at_twice_the_rate(self, manual_controller, propane_skeleton, monkeypatch):
        import molevo.runner.controller as controller_module

        rates = []
        real_mutate = controller_module.mutate

        def recording_mutate(molecule, mutation_rate, max_atoms, rng=None):
            rates.append(mutation_rate)
            return real_mutate(molecule, mutation_rate, max_atoms, rng)

        monkeypatch.setattr(controller_module, "mutate", recording_mutate)
        manual_controller.start_from_seed(propane_skeleton)
        # population_size 8: the seed itself plus 7 mutated copies
        assert rates == [pytest.approx(0.6)] * 7

    def test_seeded_run_completes(self, manual_controller, propane_skeleton):
        manual_controller.start_from_seed(propane_skeleton)
        manual_controller.scheduler.run_until_stopped(max_ticks=100)
        assert manual_controller.status == STATUS.COMPLETED


# ===========================================================================
# Live updates
# ===========================================================================

class TestUpdates:

    def test_update_params(self, manual_controller):
        manual_controller.update_params("mutation_rate", 0.5)
        assert manual_controller.params.mutation_rate == 0.5

    def test_update_params_unknown_key(self, manual_controller):
        with pytest.raises(KeyError):
            manual_controller.update_params("crossover_rate", 0.5)

    def test_update_params_invalid_value(self, manual_controller):
        with pytest.raises(ValidationError):
            manual_controller.update_params("mutation_rate", 1.5)
        assert manual_controller.params.mutation_rate == 0.3

    def test_population_size_change_applies_next_step(self, manual_controller):
        manual_controller.start()
        manual_controller.update_params("population_size", 4)
        assert len(manual_controller.snapshot().population) == 8
        manual_controller.scheduler.tick()
        assert len(manual_controller.snapshot().population) == 4

    def test_update_target_rescores(self, manual_controller):
        manual_controller.start()
        manual_controller.scheduler.tick()
        manual_controller.update_target_property(TARGET.MAXIMIZE_ATOM_C)
        state = manual_controller.snapshot()
        assert state.target_property == TARGET.MAXIMIZE_ATOM_C
        for mol in state.population:
            assert mol.fitness == mol.count("C")
        assert state.best.fitness == state.best.count("C")

    def test_update_target_unknown(self, manual_controller):
        with pytest.raises(ValueError):
            manual_controller.update_target_property("MAXIMIZE_ATOM_X")
        assert manual_controller.target_property == TARGET.MAXIMIZE_BONDS


# ===========================================================================
# Observation
# ===========================================================================

class TestObservers:

    def test_subscriber_sees_every_step(self, manual_controller, small_params):
        states = []
        manual_controller.subscribe(states.append)
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped()
        # one for start, one per step
        assert len(states) == small_params.max_generations + 2
        assert states[0].status == STATUS.RUNNING
        assert states[-1].status == STATUS.COMPLETED

    def test_unsubscribe(self, manual_controller):
        states = []
        unsubscribe = manual_controller.subscribe(states.append)
        manual_controller.start()
        unsubscribe()
        manual_controller.scheduler.tick()
        assert len(states) == 1

    def test_failing_subscriber_does_not_stop_the_run(self, manual_controller, caplog):
        def broken(state):
            raise RuntimeError("observer failure")

        manual_controller.subscribe(broken)
        manual_controller.start()
        manual_controller.scheduler.run_until_stopped(max_ticks=100)
        assert manual_controller.status == STATUS.COMPLETED
        assert "raised" in caplog.text

    def test_snapshot_is_independent(self, manual_controller):
        manual_controller.start()
        snap = manual_controller.snapshot()
        snap.population[0].atoms.clear()
        snap.population.clear()
        fresh = manual_controller.snapshot()
        assert len(fresh.population) == 8
        assert fresh.population[0].atoms

    def test_wait_times_out_while_running(self, manual_controller):
        manual_controller.start()
        assert manual_controller.wait(timeout=0.01) is False
        manual_controller.pause()
        assert manual_controller.wait(timeout=0.01) is True


# ===========================================================================
# Robustness
# ===========================================================================

class TestRobustness:

    def test_empty_population_is_rebuilt(self, manual_controller, small_params):
        manual_controller.start()
        manual_controller._population = []
        manual_controller.scheduler.tick()
        state = manual_controller.snapshot()
        assert len(state.population) == small_params.population_size
        assert state.generation == 0
        assert state.history == []
        assert state.status == STATUS.RUNNING

    def test_failing_step_ends_the_run(self, manual_controller, monkeypatch, caplog):
        import molevo.runner.controller as controller_module

        def broken_selection(*args, **kwargs):
            raise RuntimeError("selection failed")

        manual_controller.start()
        monkeypatch.setattr(controller_module, "select_parents", broken_selection)
        assert manual_controller.scheduler.tick() is False
        assert manual_controller.status == STATUS.COMPLETED
        assert not manual_controller.scheduler.active
        assert manual_controller.wait(timeout=0.01) is True
        assert "failed; ending the run" in caplog.text

    def test_single_molecule_population(self):
        params = EvolutionParams(
            population_size=1, mutation_rate=0.5, max_generations=10,
            elitism_count=0, max_atoms_per_molecule=4,
        )
        ctl = EvolutionController(
            params, TARGET.STABILITY_SCORE_MAXIMIZE,
            scheduler=ManualScheduler(), rng=np.random.default_rng(3),
        )
        ctl.start()
        ctl.scheduler.run_until_stopped(max_ticks=100)
        assert ctl.status == STATUS.COMPLETED
        assert len(ctl.snapshot().population) == 1

    def test_elitism_larger_than_population(self):
        params = EvolutionParams(
            population_size=3, max_generations=3, elitism_count=10,
            max_atoms_per_molecule=5,
        )
        ctl = EvolutionController(
            params, scheduler=ManualScheduler(), rng=np.random.default_rng(5),
        )
        ctl.start()
        ctl.scheduler.run_until_stopped(max_ticks=100)
        assert ctl.status == STATUS.COMPLETED
        assert len(ctl.snapshot().population) == 3

    @pytest.mark.parametrize("target", TARGET.all())
    def test_every_target_runs(self, small_params, target):
        ctl = EvolutionController(
            small_params, target,
            scheduler=ManualScheduler(), rng=np.random.default_rng(11),
        )
        ctl.start()
        ctl.scheduler.run_until_stopped(max_ticks=100)
        assert ctl.status == STATUS.COMPLETED


# ===========================================================================
# Threaded scheduling
# ===========================================================================

@pytest.mark.slow
class TestThreadedRun:

    def test_runs_to_completion(self, small_params):
        with EvolutionController(
            small_params, scheduler=ThreadScheduler(interval=0.0),
            rng=np.random.default_rng(2),
        ) as ctl:
            ctl.start()
            assert ctl.wait(timeout=30)
        assert ctl.status == STATUS.COMPLETED
        assert ctl.generation == small_params.max_generations

    def test_pause_from_another_thread(self):
        params = EvolutionParams(population_size=5, max_generations=100_000)
        with EvolutionController(
            params, scheduler=ThreadScheduler(interval=0.001),
            rng=np.random.default_rng(4),
        ) as ctl:
            ctl.start()
            ctl.pause()
            generation = ctl.generation
            assert not ctl.scheduler.active
            assert ctl.generation == generation
            assert ctl.status == STATUS.PAUSED

    def test_reset_while_running(self):
        params = EvolutionParams(population_size=5, max_generations=100_000)
        with EvolutionController(
            params, scheduler=ThreadScheduler(interval=0.001),
            rng=np.random.default_rng(6),
        ) as ctl:
            ctl.start()
            ctl.reset()
            state = ctl.snapshot()
        assert state.status == STATUS.IDLE
        assert state.population == []
