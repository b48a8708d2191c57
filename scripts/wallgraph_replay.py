# scripts/wallgraph_replay.py
"""CLI replaying a JSON stroke script through the wall topology engine."""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import BaseModel, Field, ValidationError
from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from wallgraph.config import EngineConfig
from wallgraph.drawing import DrawingSession
from wallgraph.errors import ConfigurationError
from wallgraph.graph import FloorPlanGraph
from wallgraph.logging_config import configure_logging
from wallgraph.models import NodeKind, WallType
from wallgraph.proximity import ProximityMergeDetector
from wallgraph.selection import SpatialQueryService


class Stroke(BaseModel):
    type: WallType = WallType.LAYOUT
    points: list[list[float]] = Field(min_length=2)


class StrokeScript(BaseModel):
    config: dict[str, Any] = Field(default_factory=dict)
    strokes: list[Stroke]


def replay(script: StrokeScript, threshold: float | None = None) -> dict[str, Any]:
    """Draw every stroke, run one proximity scan and return a JSON-ready report."""
    overrides = dict(script.config)
    if threshold is not None:
        overrides["proximity_threshold"] = threshold
    config = EngineConfig.from_dict(overrides)
    graph = FloorPlanGraph(config)
    session = DrawingSession(graph)
    queries = SpatialQueryService(graph)

    resolution_errors: list[str] = []
    for stroke in tqdm(script.strokes, desc="Replaying strokes", disable=len(script.strokes) < 2):
        wall = session.draw_wall(stroke.points, stroke.type)
        if wall is None:
            continue
        if session.last_report is not None:
            resolution_errors.extend(session.last_report.errors)

    detector = ProximityMergeDetector(graph, queries)
    detector.enable()
    detector.scan()

    walls = []
    for wall in graph.get_all_walls():
        info = queries.get_wall_info(wall.id)
        walls.append({
            "id": wall.id,
            "type": wall.type.value,
            "thickness": wall.thickness,
            "segments": len(info.segments),
            "total_length": info.total_length,
            "connected_walls": queries.find_connected_walls(wall.id),
        })

    return {
        "summary": graph.summary().model_dump(),
        "walls": walls,
        "intersections": [
            {"id": n.id, "x": n.x, "y": n.y, "degree": len(n.connected_segments)}
            for n in graph.get_all_nodes()
            if n.kind == NodeKind.INTERSECTION
        ],
        "merges": [m.model_dump(mode="json", exclude={"segment_pairs"}) for m in detector.get_active_merges()],
        "errors": resolution_errors,
    }


@click.command()
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False), required=True,
              help="JSON stroke script")
@click.option("--output", "output_path", type=click.Path(dir_okay=False), default=None,
              help="Write the JSON report here instead of stdout")
@click.option("--threshold", type=float, default=None, help="Proximity merge threshold override")
@click.option("--verbose", is_flag=True, help="Debug logging")
def cli(input_path, output_path, threshold, verbose):
    """Replay drawn strokes and report the resulting wall topology."""
    configure_logging(debug=verbose)
    try:
        script = StrokeScript.model_validate_json(Path(input_path).read_text())
        report = replay(script, threshold)
    except (ValidationError, ConfigurationError) as exc:
        raise click.ClickException(str(exc))

    text = json.dumps(report, indent=2)
    if output_path:
        Path(output_path).write_text(text)
        click.echo(f"Wrote report for {report['summary']['wall_count']} walls to {output_path}")
    else:
        click.echo(text)


if __name__ == "__main__":
    cli()
