"""
Agents package for the Campaign Intelligence Vault.

This package groups the inference gateway, the probe catalog, the rival
extractor and the orchestrator that ties them together.  Import
`ProbeOrchestrator` directly from here to simplify access:

```python
from agents import InferenceGateway, ProbeOrchestrator

orchestrator = ProbeOrchestrator(store, InferenceGateway())
```
"""

from .inference_gateway import InferenceError, InferenceErrorKind, InferenceGateway  # noqa: F401
from .probe_orchestrator import ProbeOrchestrator  # noqa: F401
from .probe_prompts import ProbeTopic  # noqa: F401

__all__ = ["InferenceError", "InferenceErrorKind", "InferenceGateway", "ProbeOrchestrator", "ProbeTopic"]
