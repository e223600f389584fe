"""Writing state graphs to disk and rendering them as text."""

import json
import logging
import os
from typing import Any, Dict, List

import networkx as nx

from .graph import StateGraph

logger = logging.getLogger(__name__)


def _ensure_parent(path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def save_graph(graph: StateGraph, output_path: str) -> Dict[str, Any]:
    data = graph.to_snapshot()
    _ensure_parent(output_path)
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)
    logger.info("State graph saved to: %s", output_path)
    return data


def load_graph_data(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def write_graphml(graph: StateGraph, output_path: str) -> None:
    """GraphML copy of the graph, with only string attributes kept."""
    g_ml = nx.MultiDiGraph()
    for state in graph.all_states():
        g_ml.add_node(state.id, url=state.url, description=state.description, domHash=state.dom_hash)
    for t in graph.transitions:
        g_ml.add_edge(
            t.from_state_id,
            t.to_state_id,
            key=t.id,
            action=t.action.type.value,
            selector=t.action.element_selector,
            label=t.action.element_label,
        )
    _ensure_parent(output_path)
    nx.write_graphml(g_ml, output_path)


def generate_summary(data: Dict[str, Any]) -> str:
    meta = data.get("metadata", {})
    states = data.get("states", {})
    rule, thin = "=" * 60, "-" * 60
    lines: List[str] = [
        rule,
        "STATE GRAPH SUMMARY",
        rule,
        "",
        f"App URL: {meta.get('appUrl', '')}",
        f"Generated: {meta.get('generatedAt', '')}",
        f"Exploration Duration: {meta.get('explorationDurationMs', 0) / 1000:.1f}s",
        "",
        f"Total States: {meta.get('totalStates', len(states))}",
        f"Total Transitions: {meta.get('totalTransitions', len(data.get('transitions', [])))}",
        f"Entry State: {data.get('entryStateId', '')}",
        "",
        thin,
        "STATES",
        thin,
    ]
    for state_id, state in states.items():
        lines.append(f"  {state_id}: {state.get('description', '')}")
        lines.append(f"    URL: {state.get('url', '')}")
        lines.append(f"    Elements: {len(state.get('elements', []))}")

    lines += ["", thin, "TRANSITIONS", thin]
    for t in data.get("transitions", []):
        action = t["action"]
        lines.append(f"  {t['fromStateId']} -> {t['toStateId']}")
        lines.append(f"    Action: {action['type']}(\"{action.get('elementLabel', '')}\")")
        lines.append(f"    Selector: {action['elementSelector']}")

    lines += ["", thin, "PATHS FROM ENTRY", thin]
    for state_id, paths in data.get("paths", {}).items():
        if paths:
            lines.append(f"  To {state_id}:")
            for path in paths[:2]:
                lines.append(f"    {' -> '.join(path)}")

    lines += ["", rule]
    return "\n".join(lines)


def generate_mermaid(data: Dict[str, Any]) -> str:
    lines = ["stateDiagram-v2"]
    for state_id, state in data.get("states", {}).items():
        short = state.get("description", "")[:30].replace('"', " ").replace("\n", " ")
        lines.append(f"    {state_id} : {short}")
    if data.get("entryStateId"):
        lines.append(f"    [*] --> {data['entryStateId']}")

    # several actions along one edge share a single arrow
    labels: Dict[tuple, List[str]] = {}
    for t in data.get("transitions", []):
        labels.setdefault((t["fromStateId"], t["toStateId"]), []).append(
            t["action"].get("elementLabel", "")
        )
    for (src, dst), names in labels.items():
        lines.append(f"    {src} --> {dst} : {', '.join(names[:2])}")
    return "\n".join(lines)
