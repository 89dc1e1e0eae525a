"""
molevo.structure

Molecule data model.

Submodules
----------
catalog     Static element metadata (valence, mass, colour)
molecule    Atom, Bond and Molecule models with graph helpers
"""
