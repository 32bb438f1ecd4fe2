"""
remotedeploy - Build and publish a containerized application on a remote host
"""

__version__ = "0.3.0"

from .errors import DeployerError
from .models import CleanupParameterSet, ParameterSet, PipelineOutcome
from .pipeline import DeploymentPipeline

__all__ = [
    "CleanupParameterSet",
    "DeployerError",
    "DeploymentPipeline",
    "ParameterSet",
    "PipelineOutcome",
]
