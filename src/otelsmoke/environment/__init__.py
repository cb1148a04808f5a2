"""
Topology management for otelsmoke.

Brings up the services under test with Docker Compose, waits until they
answer their readiness probes, and guarantees teardown.
"""

from .compose import ComposeError, ComposeStack, split_override_files
from .controller import EnvironmentController, ResolvedEndpoints
from .probes import ReadinessProbe, default_probes, wait_until_ready

__all__ = [
    "ComposeError",
    "ComposeStack",
    "EnvironmentController",
    "ReadinessProbe",
    "ResolvedEndpoints",
    "default_probes",
    "split_override_files",
    "wait_until_ready",
]
