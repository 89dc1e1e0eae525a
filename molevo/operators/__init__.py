"""
molevo.operators

Structural mutation operators.

Submodules
----------
base        Abstract MutationOperator base class and registry
mutation    retype / add atom / remove atom / add bond / remove bond, mutate()

Operators are registered in MUTATION_REGISTRY when mutation is imported:

    from molevo.operators.base import MUTATION_REGISTRY
    import molevo.operators.mutation
"""
