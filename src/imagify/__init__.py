"""Imagify - text-to-image relay server and client adapter."""

__version__ = "0.1.0"

from imagify.core.config import ImagifyConfig, config
from imagify.core.errors import ErrorKind
from imagify.core.relay import InferenceRelay, RelayFailure, RelaySuccess

__all__ = [
    "ErrorKind",
    "ImagifyConfig",
    "InferenceRelay",
    "RelayFailure",
    "RelaySuccess",
    "config",
]
