"""
Chunk-oriented batch pipeline for person records.

This package contains the step engine and everything the person pipeline
plugs into it:

Modules:
    base: Abstract ItemReader / ItemProcessor / ItemWriter
    step_context: Per-step counters, execution context and events
    fault_policy: Skip/retry classification and limits
    chunk_engine: Executes one step chunk by chunk
    enrichment: Batched age calculation service
    processors: Scenario-driven processor of the enrich step
    runner: Orchestrates ingest → enrich → export under one run
    registry: Background runs and their stop events
    listeners: Run-level logging

Subpackages:
    readers: CSV reader and person store reader
    writers: Upsert writer, enrich-then-upsert writer, file writer

Architecture:
    Every step is read → process → write, one chunk at a time:

    1. Read - Pull up to chunk_size items from the reader
    2. Process - Transform each item; skippable/retryable errors are
       handled per item under the step's FaultPolicy
    3. Write - Hand the surviving items to the writer inside one
       transaction scope; commit, or roll back and retry / rescan

Usage:
    from ingestion.runner import PipelineRunner
    from schemas.pipeline import RunParameters, ScenarioMode

Example:
    runner = PipelineRunner(session)
    result = await runner.run(RunParameters(scenario=ScenarioMode.PARTIAL, skip_every=7))

    print(f"Run {result.run_id}: {result.status.value}")

Error Handling:
    Pipeline exceptions carry a kind tag (core.exceptions.ErrorKind);
    the fault policy dispatches on it. Errors that end a step are
    reported in its StepResult rather than raised.
"""

__all__ = [
    "ChunkEngine",
    "StepDefinition",
    "FaultPolicy",
    "PipelineRunner",
    "RunRegistry",
]
