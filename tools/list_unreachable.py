import sys
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SCRIPT_PATH = REPO_ROOT / "story" / "script.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from branchplay.loader import load_schema
from branchplay.script_schema import END_TARGET, START_SCENE, Jump, Option, Scene, SchemaEntry
from branchplay.traversal import (
    build_scene_map,
    collect_options,
    current_scene_label,
    find_last_decision_point,
    process_option_then,
)


def scene_segments(schema: Sequence[SchemaEntry]) -> List[Tuple[str, int, int]]:
    """Split the script into (label, start, end) spans, one per scene."""
    starts = [idx for idx, entry in enumerate(schema) if isinstance(entry, Scene)]
    segments = []
    if schema and (not starts or starts[0] != 0):
        segments.append((START_SCENE, 0, starts[0] if starts else len(schema)))
    for pos, start in enumerate(starts):
        end = starts[pos + 1] if pos + 1 < len(starts) else len(schema)
        segments.append((schema[start].label, start, end))
    return segments


def build_graph(schema: Sequence[SchemaEntry]) -> Tuple[Dict[str, List[str]], List[str]]:
    scene_map = build_scene_map(schema)
    segments = scene_segments(schema)
    graph: Dict[str, List[str]] = {label: [] for label, _, _ in segments}
    missing_targets: List[str] = []

    def add_edge(origin: str, target: str) -> None:
        if target == END_TARGET:
            return
        if target not in scene_map:
            missing_targets.append(f"scene {origin} -> missing scene {target}")
            return
        graph[origin].append(target)

    for pos, (label, start, end) in enumerate(segments):
        idx = start + 1 if isinstance(schema[start], Scene) else start
        falls_through = True
        while idx < end:
            entry = schema[idx]
            if isinstance(entry, Option):
                for option in collect_options(schema, idx):
                    target = process_option_then(option).jump_target
                    if target is not None:
                        add_edge(label, target)
                falls_through = False
                break
            if isinstance(entry, Jump):
                add_edge(label, entry.target)
                falls_through = False
                break
            idx += 1
        if not falls_through:
            continue
        if pos + 1 < len(segments):
            graph[label].append(segments[pos + 1][0])
            continue
        last_decision = find_last_decision_point(schema, len(schema))
        if last_decision is not None:
            graph[label].append(current_scene_label(schema, last_decision + 1) or START_SCENE)
    return graph, missing_targets


def traverse_from(start_node: str, graph: Dict[str, List[str]]) -> set:
    if start_node not in graph:
        return set()
    visited = set()
    stack = [start_node]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        stack.extend(graph.get(current, []))
    return visited


def unreachable_scenes(schema: Sequence[SchemaEntry], graph: Dict[str, List[str]]) -> List[str]:
    segments = scene_segments(schema)
    if not segments:
        return []
    reached = traverse_from(segments[0][0], graph)
    return [label for label, _, _ in segments if label not in reached]


def main() -> None:
    script_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_SCRIPT_PATH
    schema = load_schema(script_path)
    graph, missing_targets = build_graph(schema)
    unreachable = unreachable_scenes(schema, graph)

    print(f"Script file: {script_path}")
    print(f"Total scenes: {len(graph)}")
    print(f"Reachable scenes: {len(graph) - len(unreachable)}")
    for message in missing_targets:
        print(f"  ! {message}")
    if unreachable:
        print("Unreachable scenes:")
        for label in unreachable:
            print(f"  - {label}")
    else:
        print("All scenes reachable from the start of the script.")


if __name__ == "__main__":
    main()
