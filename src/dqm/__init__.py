"""
dqm - Data-quality monitoring for ingested content provider files.

Uploads to the input bucket trigger a crawl → catalog → query → evaluate →
notify workflow per content provider. The package is layered:

- dqm.core: logging, errors, settings
- dqm.execution: retry and deadline primitives
- dqm.orchestration: generic state-machine engine (Step, Workflow, WorkflowRunner)
- dqm.monitoring: the quality-check workflow, result normalizer, collaborators
- dqm.cli: the ``dqm`` command line
"""

__version__ = "0.1.0"
