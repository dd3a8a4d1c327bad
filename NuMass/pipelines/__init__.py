"""
NuMass pipelines module.

High-level pipeline functions for composing workflow steps.
Pipelines use functional composition to define simulation sequences.
"""

from .simulation import (
    generation_pipeline,
    analysis_pipeline,
    simulation_pipeline,
)

__all__ = [
    'generation_pipeline',
    'analysis_pipeline',
    'simulation_pipeline',
]
