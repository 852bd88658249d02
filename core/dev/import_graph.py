"""Static import graph for ``core`` (layering guardrail used by tests).

Reads top-level ``import`` / ``from`` lines of every module under the root
and records edges between project-internal modules. Relative imports are
resolved against the importing module's package. Imports nested inside
functions (lazy imports of optional runtimes) are indented and therefore
ignored, which is what the layering rules want.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Set, Tuple

IMPORT_RE = re.compile(r"^(?:from|import)\s+(\.*)([a-zA-Z0-9_.]*)")


def _module_name(root_path: Path, py: Path, prefix: str) -> Tuple[str, str]:
    parts = list(py.relative_to(root_path).with_suffix("").parts)
    is_pkg = parts[-1] == "__init__"
    if is_pkg:
        parts = parts[:-1]
    name = ".".join([prefix, *parts])
    package = name if is_pkg else name.rsplit(".", 1)[0]
    return name, package


def _resolve(package: str, dots: str, target: str) -> str:
    if not dots:
        return target
    base = package.split(".")
    if len(dots) > 1:
        base = base[: -(len(dots) - 1)]
    return ".".join([*base, target]) if target else ".".join(base)


def build_import_graph(root: str | Path = "core") -> Dict[str, Set[str]]:
    root_path = Path(root)
    prefix = root_path.name
    edges: Dict[str, Set[str]] = {}
    for py in sorted(root_path.rglob("*.py")):
        src, package = _module_name(root_path, py, prefix)
        edges.setdefault(src, set())
        with py.open("r", encoding="utf-8") as f:
            for line in f:
                m = IMPORT_RE.match(line)
                if not m:
                    continue
                target = _resolve(package, m.group(1), m.group(2))
                if target == prefix or target.startswith(prefix + "."):
                    edges[src].add(target)
    for n in list(edges):
        for m in edges[n]:
            edges.setdefault(m, set())
    return edges


def detect_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    stack: Set[str] = set()
    cycles: List[List[str]] = []

    def dfs(node: str, path: List[str]) -> None:
        if node in stack:
            idx = path.index(node)
            cycles.append(path[idx:] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.add(node)
        for nxt in sorted(graph.get(node, ())):
            dfs(nxt, path + [nxt])
        stack.remove(node)

    for n in sorted(graph):
        if n not in visited:
            dfs(n, [n])
    return cycles


def forbidden_edges(
    graph: Dict[str, Set[str]], rules: List[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    found: List[Tuple[str, str]] = []
    for src, targets in graph.items():
        for dst in targets:
            for a, b in rules:
                if src.startswith(a) and dst.startswith(b):
                    found.append((src, dst))
    return found


__all__ = [
    "build_import_graph",
    "detect_cycles",
    "forbidden_edges",
]
