"""Client side of Imagify: prompt composition, relay calls, image handles.

Modules
-------
adapter
    :class:`InferenceClientAdapter` - feature operations over the relay.
prompt_builder
    Prompt templates for each feature.
resources
    :class:`ImageResourceStore` and :class:`ImageHandle`.
activity
    Identity and activity-log collaborator interfaces.
"""

from imagify.client.activity import (
    FeatureType,
    GenerationLog,
    InMemoryActivityRecorder,
    StaticIdentity,
)
from imagify.client.adapter import FitCheckAnalysis, FitCheckResult, InferenceClientAdapter
from imagify.client.resources import ImageHandle, ImageResourceStore

__all__ = [
    "FeatureType",
    "FitCheckAnalysis",
    "FitCheckResult",
    "GenerationLog",
    "ImageHandle",
    "ImageResourceStore",
    "InMemoryActivityRecorder",
    "InferenceClientAdapter",
    "StaticIdentity",
]
