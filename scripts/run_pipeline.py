"""
Run the person pipeline once, outside the API.

Usage:
    python scripts/run_pipeline.py [--scenario PARTIAL --skip-every 7] [--csv input/persons.csv]
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine
from core.exceptions import PipelineException
from core.logging import setup_logging
from ingestion.runner import PipelineRunner
from models.base import RunStatus
from schemas.pipeline import RunParameters, ScenarioMode

setup_logging()
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> RunParameters:
    parser = argparse.ArgumentParser(description="Run the person batch pipeline once")
    parser.add_argument("--scenario", default=settings.DEFAULT_SCENARIO,
                        choices=[mode.value for mode in ScenarioMode], type=str.upper)
    parser.add_argument("--skip-every", type=int, default=settings.DEFAULT_SKIP_EVERY)
    parser.add_argument("--retry-attempts", type=int, default=settings.DEFAULT_RETRY_ATTEMPTS)
    parser.add_argument("--csv", dest="csv_path", default=settings.DEFAULT_CSV_PATH)
    args = parser.parse_args(argv)
    return RunParameters(
        scenario=args.scenario,
        skip_every=args.skip_every,
        retry_attempts=args.retry_attempts,
        csv_path=args.csv_path,
    )


async def run_pipeline(parameters: RunParameters) -> int:
    """Run the pipeline; returns the process exit code."""
    try:
        async with async_session_maker() as session:
            result = await PipelineRunner(session).run(parameters)
    except PipelineException as e:
        logger.error(f"Pipeline could not start: {e}")
        return 2
    finally:
        await engine.dispose()

    if result.status != RunStatus.COMPLETED:
        logger.error(f"Run {result.run_id} ended {result.status.value}: {result.error_message}")
        return 1

    logger.info(f"Run {result.run_id} completed; output written to {result.output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_pipeline(parse_args())))
