"""Delivery-time modeling: splitting, recipes, model specifications, workflows and tuning."""

from .parameters import tune
from .workflows import FittedWorkflow, Workflow, finalize_workflow, load_workflow

__version__ = "0.1.0"

__all__ = ["FittedWorkflow", "Workflow", "finalize_workflow", "load_workflow", "tune"]
