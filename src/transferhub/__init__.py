"""Deployment composition for the Data Transfer Hub S3 plugin."""

from .catalog import Parameter, ParameterCatalog, ParameterCatalogBuilder, ParameterKind, ParameterSet
from .errors import CompositionError, InvariantViolation, ProvisioningError, ValidationError, Violation
from .parameters import declare_transfer_parameters
from .runtime import ClusterSpec, FleetSpec, RunType, RuntimeMode, select_runtime_mode

__all__ = [
    "ClusterSpec",
    "CompositionError",
    "FleetSpec",
    "InvariantViolation",
    "Parameter",
    "ParameterCatalog",
    "ParameterCatalogBuilder",
    "ParameterKind",
    "ParameterSet",
    "ProvisioningError",
    "RunType",
    "RuntimeMode",
    "ValidationError",
    "Violation",
    "declare_transfer_parameters",
    "select_runtime_mode",
]
