# Application layer: the audit pipeline that orchestrates sources, evaluators and sinks.
# Import from the submodules (orchestrator, snapshot_builder, report, interfaces, exceptions).
