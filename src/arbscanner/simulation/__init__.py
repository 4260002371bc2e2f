"""Simulation module: bounded price walk and synthetic opportunity generation."""

from arbscanner.simulation.generator import OpportunityGenerator
from arbscanner.simulation.price_model import PriceModel


__all__ = [
    "OpportunityGenerator",
    "PriceModel",
]
