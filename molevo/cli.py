"""
molevo/cli.py

Command-line interface for molevo.

Commands
--------
  molevo init      Validate molevo.yaml.  Prints a template config if none exists.
  molevo run       Run a simulation headless until it completes and export results.
  molevo targets   List the available target properties.
  molevo inspect   Print the properties of a molecule JSON file.

Usage
-----
    molevo init [--config molevo.yaml]
    molevo run  [--config molevo.yaml] [--seed N] [--seed-molecule best.json]
                [--output-dir results] [--interval S] [--verbose]
    molevo targets
    molevo inspect molecule.json [--target MAXIMIZE_BONDS]
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

# ---------------------------------------------------------------------------
# Logging setup: configured once at CLI entry, not at import time
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
        level=level,
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

_config_option = click.option(
    "--config", "-c",
    default="molevo.yaml",
    show_default=True,
    type=click.Path(exists=False, dir_okay=False),
    help="Path to the molevo.yaml configuration file.",
)

_verbose_option = click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)


def _load_or_default(config_path: Path):
    """Load the config if it exists, otherwise fall back to the defaults."""
    from molevo.config import MolevoConfig, load_config

    if not config_path.exists():
        logging.getLogger(__name__).info(
            f"No config at {config_path}; using default settings"
        )
        return MolevoConfig()
    return load_config(config_path)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(package_name="molevo")
def cli() -> None:
    """
    molevo: evolutionary optimisation of small graph molecules.

    Start with `molevo init > molevo.yaml`, edit the file, then
    `molevo run` to evolve a population towards the chosen target.
    """


# ---------------------------------------------------------------------------
# molevo init
# ---------------------------------------------------------------------------

@cli.command("init")
@_config_option
def cmd_init(config: str) -> None:
    """
    Validate molevo.yaml, or print a template when it is missing.

    The template goes to stdout with exit code 1 so it can be captured:

        molevo init > molevo.yaml
    """
    from molevo.config import CONFIG_TEMPLATE, load_config

    config_path = Path(config)
    # The shell creates an empty file before `molevo init > molevo.yaml`
    # runs, so a zero-byte file counts as missing.
    if not config_path.exists() or config_path.stat().st_size == 0:
        click.echo(CONFIG_TEMPLATE, nl=False)
        raise SystemExit(1)

    try:
        cfg = load_config(config_path)
    except Exception as exc:
        click.echo(f"Error: config validation failed:\n  {exc}", err=True)
        raise SystemExit(1)

    click.echo(f"✓ Config valid: {config_path}")
    click.echo(f"  target:      {cfg.target_property}")
    click.echo(f"  population:  {cfg.evolution.population_size}")
    click.echo(f"  generations: {cfg.evolution.max_generations}")
    click.echo()
    click.echo("Next step:")
    click.echo(f"  molevo run --config {config_path}")


# ---------------------------------------------------------------------------
# molevo run
# ---------------------------------------------------------------------------

@cli.command("run")
@_config_option
@_verbose_option
@click.option("--seed", type=int, default=None,
              help="Random seed for reproducibility.")
@click.option("--seed-molecule", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Molecule JSON to seed the population from.")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False), default=None,
              help="Write the best molecule (JSON) and history (CSV) here.")
@click.option("--interval", type=float, default=None,
              help="Seconds between generation steps (overrides the config; thread scheduler only).")
def cmd_run(
    config: str,
    verbose: bool,
    seed: int | None,
    seed_molecule: str | None,
    output_dir: str | None,
    interval: float | None,
) -> None:
    """
    Run one simulation to completion.

    Uses molevo.yaml when present, the built-in defaults otherwise.
    The scheduler comes from the config: `thread` steps in the background,
    `manual` steps the run on this process until it completes.
    Ctrl-C stops the run and still exports what was reached.
    """
    _setup_logging(verbose)
    log = logging.getLogger(__name__)

    try:
        cfg = _load_or_default(Path(config))
    except Exception as exc:
        click.echo(f"Error: config validation failed:\n  {exc}", err=True)
        raise SystemExit(1)

    import numpy as np

    from molevo.analysis.export import export_state, read_molecule_json
    from molevo.runner.controller import EvolutionController
    from molevo.scheduler.base import build_scheduler
    from molevo.scheduler.local import ManualScheduler, ThreadScheduler

    seed_mol = None
    if seed_molecule is not None:
        try:
            seed_mol = read_molecule_json(seed_molecule)
        except Exception as exc:
            click.echo(f"Error: could not read seed molecule:\n  {exc}", err=True)
            raise SystemExit(1)

    scheduler = build_scheduler(cfg.scheduler)
    if interval is not None and isinstance(scheduler, ThreadScheduler):
        scheduler.interval = interval
    log.debug(f"Using {type(scheduler).__name__} (type={cfg.scheduler.type})")
    controller = EvolutionController(
        params=cfg.evolution,
        target_property=cfg.target_property,
        goals=cfg.goals,
        scheduler=scheduler,
        rng=np.random.default_rng(seed),
    )

    interrupted = False
    with controller:
        try:
            if seed_mol is not None and seed_mol.atoms:
                controller.start_from_seed(seed_mol)
            else:
                controller.start()
            if isinstance(scheduler, ManualScheduler):
                # no background thread: step on this one until the run ends
                scheduler.run_until_stopped()
            while not controller.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            interrupted = True
            controller.pause()
            click.echo("\nInterrupted by user.", err=True)
        except Exception as exc:
            log.exception("Fatal error in evolution loop")
            click.echo(f"\nFatal error: {exc}", err=True)
            raise SystemExit(1)

    state = controller.snapshot()
    click.echo(_summary(state))

    if output_dir is not None:
        for path in export_state(state, output_dir):
            click.echo(f"✓ Wrote {path}")

    if interrupted:
        raise SystemExit(130)


def _summary(state) -> str:
    lines = [
        f"Status:      {state.status}",
        f"Target:      {state.target_property}",
        f"Generation:  {state.generation}",
    ]
    if state.best is not None:
        best = state.best
        lines += [
            f"Best:        {best.fitness:.4f}  {best.formula}  "
            f"({len(best.atoms)} atoms, {len(best.bonds)} bonds, "
            f"MW {best.molecular_weight:.2f})",
        ]
    if state.history:
        last = state.history[-1]
        lines.append(f"Final avg:   {last.average_fitness:.4f}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# molevo targets
# ---------------------------------------------------------------------------

@cli.command("targets")
@_config_option
def cmd_targets(config: str) -> None:
    """List target properties, with goal values from the config if present."""
    from molevo.fitness.properties import TARGET, describe_target

    try:
        cfg = _load_or_default(Path(config))
    except Exception as exc:
        click.echo(f"Error: config validation failed:\n  {exc}", err=True)
        raise SystemExit(1)

    for target in TARGET.all():
        marker = "*" if target == cfg.target_property else " "
        click.echo(f"{marker} {target}")
        click.echo(f"      {describe_target(target, cfg.goals)}")


# ---------------------------------------------------------------------------
# molevo inspect
# ---------------------------------------------------------------------------

@cli.command("inspect")
@click.argument("molecule_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--target", "-t", type=str, default=None,
              help="Only score this target property.")
@_config_option
def cmd_inspect(molecule_file: str, target: str | None, config: str) -> None:
    """
    Print composition, structure and fitness scores of a molecule JSON file.

    Examples:

    \b
        molevo inspect results/best_molecule_gen100.json
        molevo inspect best.json --target STABILITY_SCORE_MAXIMIZE
    """
    import pandas as pd

    from molevo.analysis.export import read_molecule_json
    from molevo.fitness.properties import TARGET, compute_fitness
    from molevo.structure.catalog import ATOM_CATALOG

    try:
        mol = read_molecule_json(molecule_file)
        cfg = _load_or_default(Path(config))
        targets = [TARGET.validate(target)] if target else TARGET.all()
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    click.echo(f"Molecule {mol.id}")
    click.echo(f"  Formula:           {mol.formula}")
    click.echo(f"  Molecular weight:  {mol.molecular_weight:.2f} Da")
    click.echo(f"  Atoms / bonds:     {len(mol.atoms)} / {len(mol.bonds)}")
    click.echo(f"  Fragments:         {mol.n_components}")
    for symbol, n in sorted(mol.element_counts.items()):
        click.echo(f"  {ATOM_CATALOG[symbol].name + ' atoms:':<19}{n}")
    over = mol.over_valent_atoms()
    if over:
        click.echo(f"  ⚠  {len(over)} over-valent atom(s)")

    scores = pd.DataFrame(
        [(t, compute_fitness(mol, t, cfg.goals)) for t in targets],
        columns=["target", "fitness"],
    )
    click.echo()
    with pd.option_context("display.max_colwidth", 60, "display.width", 120):
        click.echo(scores.to_string(index=False, float_format=lambda v: f"{v:.4f}"))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
