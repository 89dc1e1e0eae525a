"""
molevo.analysis

Submodules
----------
export      Best-molecule JSON and fitness-history CSV
"""
