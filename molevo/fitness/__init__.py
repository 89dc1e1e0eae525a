"""
molevo.fitness

Fitness evaluation of molecules against a target property.

Submodules
----------
properties  TARGET constants, per-target scoring rules, compute_fitness()
"""
