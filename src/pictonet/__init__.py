"""`PictoNet` - staged pictogram generation with cascade invalidation.

Subpackages:
- schemas: Rows, stage payloads and configuration
- contracts: Error taxonomy and stage preconditions
- pipeline: Row store, stage processor, cascade runner, orchestrator
- collaborators: Gemini generation and structuring, vtracer tracing
- core: Storage, project exchange, vector library, logging, reports
"""

__version__ = "0.1.0"
