"""Reading candidate tuples produced by a duplicate finder."""

import csv
from pathlib import Path
from typing import List, Tuple

MergeTuple = Tuple[int, List[int]]


def parse_tuple_row(row: List[str], line_no: int = 0) -> MergeTuple:
    """First column is the main contact, the remaining non-empty columns the others."""
    cells = [cell.strip() for cell in row if cell.strip()]
    if len(cells) < 2:
        raise ValueError(f"Line {line_no}: a tuple needs a main contact and at least one other contact")
    try:
        ids = [int(cell) for cell in cells]
    except ValueError:
        raise ValueError(f"Line {line_no}: contact IDs must be integers, got {cells}")
    return ids[0], ids[1:]


def load_tuples(path: Path) -> List[MergeTuple]:
    """
    Load merge tuples from a CSV file.

    Blank lines and lines starting with '#' are skipped.
    """
    tuples: List[MergeTuple] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        for line_no, row in enumerate(csv.reader(f), start=1):
            if not row or not "".join(row).strip():
                continue
            if row[0].strip().startswith("#"):
                continue
            tuples.append(parse_tuple_row(row, line_no))
    return tuples
