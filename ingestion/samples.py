"""
Sample CSV generation for demonstrating skips at volume
"""

from pathlib import Path
from typing import Optional, Tuple
import logging

import pandas as pd

from core.config import settings

logger = logging.getLogger(__name__)

PARTIAL_SAMPLE_NAME = "persons_partial_10k.csv"
HEADER = ["FirstName", "LastName", "Email", "DateOfBirth"]


def generate_partial_sample(
    directory: Optional[str] = None,
    total_lines: int = 10000,
    invalid_every: int = 7
) -> Tuple[Path, int]:
    """
    Write a person CSV where every ``invalid_every``-th email has no '@'.

    Returns the file path and the number of invalid lines.
    """
    target_dir = Path(directory or settings.SAMPLES_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / PARTIAL_SAMPLE_NAME

    rows = []
    invalid = 0
    for i in range(1, total_lines + 1):
        if invalid_every and i % invalid_every == 0:
            email = f"invalid-{i}.example.com"
            invalid += 1
        else:
            email = f"partial10k{i}@example.com"
        rows.append({
            "FirstName": f"PARTIAL10K_{i:05d}",
            "LastName": "Demo",
            "Email": email,
            "DateOfBirth": f"{1980 + (i % 30):04d}-{(i % 12) + 1:02d}-{(i % 28) + 1:02d}",
        })

    pd.DataFrame(rows, columns=HEADER).to_csv(path, index=False)
    logger.info(f"Generated {total_lines} sample lines ({invalid} invalid) at {path}")
    return path, invalid
