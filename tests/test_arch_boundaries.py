from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path

SRC = Path(__file__).resolve().parents[1] / "src"
PACKAGE_ROOT = "posterguard"

# Lower rank = more basic. A module may only import modules of a strictly lower rank.
# The orchestrators (dispatcher, report, cli) sit on top; nothing below may reach up.
LAYERS: dict[str, int] = {
    "errors": 0,
    "limits": 1,
    "renames": 1,
    "registry": 2,
    "pathkey": 3,
    "tags": 3,
    "tools": 3,
    "probe": 4,
    "reducer": 4,
    "resolver": 4,
    "run_config": 4,
    "dispatcher": 5,
    "report": 6,
    "cli": 7,
}

# Third-party imports are confined to the module that owns the concern.
THIRD_PARTY_OWNERS: dict[str, set[str]] = {
    "PIL": {"probe"},
}


@dataclass(frozen=True)
class Edge:
    src: str
    dst: str
    lineno: int


def _modules() -> dict[str, ast.Module]:
    pkg = SRC / PACKAGE_ROOT
    return {
        py.stem: ast.parse(py.read_text(encoding="utf-8"), filename=str(py))
        for py in sorted(pkg.glob("*.py"))
    }


def _imports(tree: ast.Module) -> list[tuple[str, int]]:
    found: list[tuple[str, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            found.extend((alias.name, node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            found.append((node.module, node.lineno))
    return found


def _internal_edges(mods: dict[str, ast.Module]) -> list[Edge]:
    edges: list[Edge] = []
    for name, tree in mods.items():
        for target, lineno in _imports(tree):
            parts = target.split(".")
            if parts[0] == PACKAGE_ROOT and len(parts) > 1:
                edges.append(Edge(name, parts[1], lineno))
    return edges


def test_every_module_has_a_layer() -> None:
    mods = _modules()
    assert sorted(mods) == sorted(LAYERS), "new module: give it a rank in LAYERS"


def test_imports_point_downwards_only() -> None:
    bad = [
        f"  {e.src}.py:{e.lineno}  {e.src} (rank {LAYERS[e.src]}) -> {e.dst} (rank {LAYERS[e.dst]})"
        for e in _internal_edges(_modules())
        if LAYERS[e.dst] >= LAYERS[e.src]
    ]
    assert not bad, "Forbidden upward/sideways imports:\n" + "\n".join(bad)


def test_third_party_imports_stay_with_their_owner() -> None:
    bad: list[str] = []
    for name, tree in _modules().items():
        for target, lineno in _imports(tree):
            top = target.split(".")[0]
            owners = THIRD_PARTY_OWNERS.get(top)
            if owners is not None and name not in owners:
                bad.append(f"  {name}.py:{lineno} imports {target}")
    assert not bad, "Third-party import outside its owner module:\n" + "\n".join(bad)
