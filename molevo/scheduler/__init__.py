"""
molevo.scheduler

Submodules
----------
base        Abstract StepScheduler and build_scheduler()
local       ThreadScheduler (background thread) and ManualScheduler
"""
