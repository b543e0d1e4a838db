"""
Run-level logging listener: banner at start, per-step summary at the end
"""

import logging

from models.base import RunStatus
from schemas.pipeline import RunParameters, RunResult

logger = logging.getLogger(__name__)


class RunLoggingListener:
    """Logs the lifecycle of one pipeline run."""

    def before_run(self, run_id: str, parameters: RunParameters) -> None:
        logger.info("=" * 60)
        logger.info(f"Pipeline run {run_id} started")
        logger.info(f"   - Scenario: {parameters.scenario.value}")
        if parameters.skip_every:
            logger.info(f"   - Skip every: {parameters.skip_every}")
        if parameters.csv_path:
            logger.info(f"   - CSV path: {parameters.csv_path}")
        logger.info("=" * 60)

    def after_run(self, result: RunResult) -> None:
        logger.info("=" * 60)
        logger.info(f"Pipeline run {result.run_id} finished")
        logger.info(f"   - Final status: {result.status.value}")
        if result.duration_seconds is not None:
            logger.info(f"   - Duration: {result.duration_seconds:.2f}s")

        for step in result.steps:
            logger.info(
                f"   - Step {step.step_name}: {step.status.value} "
                f"(read={step.read_count}, write={step.write_count}, skip={step.skip_count})"
            )
            if step.skip_count > 0:
                logger.warning(f"     {step.skip_summary}")

        if result.rejected_by_sweep:
            logger.warning(f"   - Rejected by end-of-enrich sweep: {result.rejected_by_sweep}")

        if result.status == RunStatus.FAILED:
            logger.error(f"   - Run failed: {result.error_message}")
        elif result.status == RunStatus.STOPPED:
            logger.warning("   - Run stopped before completion")
        else:
            logger.info(f"   - Output file: {result.output_file}")
        logger.info("=" * 60)
