"""Sensor entity exports for Solis Manager."""
from .plan import CurrentActionSensor, CurrentPriceSensor, PlanSensor
from .tracking import LastActuationSensor

__all__ = [
    "CurrentActionSensor",
    "CurrentPriceSensor",
    "LastActuationSensor",
    "PlanSensor",
]
