"""
molevo

Evolutionary optimisation of small graph-structured molecules.

Subpackages
-----------
structure    Atom catalog and the Atom / Bond / Molecule graph model
population   Random molecule generation and parent selection
fitness      One scoring rule per target property
operators    Structural mutation operators
scheduler    Periodic step schedulers driving the generation loop
runner       EvolutionController state machine
analysis     Export of best molecules and fitness history
"""
