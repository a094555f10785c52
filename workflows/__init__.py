"""
Sequential multi-party PDF form signing.

Entry point: ``workflows.bootstrap.build_workflow_service``.
"""
