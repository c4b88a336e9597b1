"""Core functionality for the Imagify relay.

- **ImagifyConfig** / **config**: configuration using Pydantic Settings
  (``IMAGIFY_*`` variables plus ``HF_TOKEN``).
- **ErrorKind**: the closed error taxonomy with status codes and messages.
- **InferenceRelay**: upstream calls with rate-limit retry and response
  classification.

Usage Example
-------------
::

    from imagify.core import InferenceRelay, config

    relay = InferenceRelay(config)
    result = await relay.generate("a lighthouse at dusk")
    if result.ok:
        data = result.content
    else:
        print(result.kind, result.message)
    await relay.close()
"""

from imagify.core.config import ImagifyConfig, config
from imagify.core.errors import ErrorKind
from imagify.core.relay import InferenceRelay, RelayFailure, RelaySuccess, RetryState

__all__ = [
    "ErrorKind",
    "ImagifyConfig",
    "InferenceRelay",
    "RelayFailure",
    "RelaySuccess",
    "RetryState",
    "config",
]
