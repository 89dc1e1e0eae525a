"""
molevo.population

Submodules
----------
factory     Random valid molecules for the initial population
population  Elitism + tournament parent selection, population statistics
"""
