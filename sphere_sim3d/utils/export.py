"""
Export utilities for simulation snapshots.

Usage:
    >>> from sphere_sim3d.utils.export import export_snapshot_csv
    >>> export_snapshot_csv(sim.snapshot(), "frame.csv")
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sphere_sim3d.core.sim import SimSnapshot


HEADER = ["species", "index", "x", "y", "z", "size"]


@dataclass
class ExportStats:
    """Statistics from an export operation."""
    file_path: Path
    e_count: int
    mp_count: int
    frame: int
    timestamp: str


def export_snapshot_csv(
    snapshot: "SimSnapshot",
    output_path: str | Path,
    *,
    e_size: float | None = None,
) -> ExportStats:
    """
    Write one row per particle to a CSV file.

    Args:
        snapshot: Snapshot from ``SphereSim3D.snapshot()``
        output_path: Path to output CSV file
        e_size: Size written for E rows (empty when None)

    Returns:
        ExportStats with export details
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().isoformat()
    e_size_cell = "" if e_size is None else f"{float(e_size):.6g}"
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        for i, (x, y, z) in enumerate(snapshot.e_positions):
            writer.writerow(["E", i, f"{x:.6f}", f"{y:.6f}", f"{z:.6f}", e_size_cell])
        for i, ((x, y, z), size) in enumerate(zip(snapshot.mp_positions, snapshot.mp_sizes)):
            writer.writerow(["MP", i, f"{x:.6f}", f"{y:.6f}", f"{z:.6f}", f"{size:.6g}"])

    return ExportStats(
        file_path=output_path,
        e_count=int(snapshot.e_positions.shape[0]),
        mp_count=int(snapshot.mp_positions.shape[0]),
        frame=int(snapshot.frame),
        timestamp=timestamp,
    )
