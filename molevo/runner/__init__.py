"""
molevo.runner

Submodules
----------
controller  EvolutionController: run state machine and generation step
"""
