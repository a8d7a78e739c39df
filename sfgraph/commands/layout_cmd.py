"""Layout and summary commands - lay out a metadata snapshot or describe it."""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
import html
import json
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..categories import RelationshipType, truncate_label
from ..graph import FilterCriteria, Graph, filter_graph, filter_relationships, load_snapshot
from ..layout import LayoutConfig, LayoutSession, ManualScheduler
from ..models import FlowLayoutResult, LayoutKind, LayoutResult


def run_layout(
    snapshot_path: Path,
    *,
    kind: str = "force",
    focal: str | None = None,
    search: str | None = None,
    categories: tuple[str, ...] = (),
    relationships: tuple[str, ...] = (),
    seed: int | None = None,
    max_ticks: int | None = None,
    lenient: bool = False,
    fmt: str = "md",
    out: Path | None = None,
    config: LayoutConfig | None = None,
) -> int:
    """Filter a snapshot, run one layout to completion and print the positions."""
    console = Console(stderr=True)

    graph = load_snapshot(snapshot_path).build(lenient=lenient)
    graph = filter_relationships(graph, relationships)
    graph = filter_graph(graph, FilterCriteria(search_term=search, categories=frozenset(categories) or None))

    cfg = config or LayoutConfig()
    if max_ticks is not None:
        cfg = replace(cfg, force=replace(cfg.force, max_ticks=max_ticks))

    layout_kind = LayoutKind(kind)
    params: dict = {}
    if layout_kind is LayoutKind.FORCE and seed is not None:
        params["seed"] = seed
    if layout_kind is LayoutKind.RADIAL:
        if not focal:
            raise ValueError("radial layout needs --focal")
        params["focal_node_id"] = focal

    scheduler = ManualScheduler()
    session = LayoutSession(graph, scheduler=scheduler, config=cfg)
    session.select_layout(layout_kind, **params)
    scheduler.run_until_idle()
    result = session.latest
    if result is None:
        raise ValueError(f"{layout_kind.value} layout produced no result")

    for warning in result.warnings:
        console.print(f"Warning: {warning}", style="yellow")

    payload = _layout_payload(graph, result)

    if fmt == "rich":
        if out:
            rich_console = Console(record=True)
            _print_layout_rich(payload, console=rich_console)
            out.write_text(rich_console.export_text(), encoding="utf-8")
            console.print(f"Wrote layout output to {out}", style="green")
        else:
            _print_layout_rich(payload, console=Console())
        return 0

    if fmt == "json":
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
    elif fmt == "svg":
        text = _to_svg(graph, result, title=payload["title"])
    else:
        text = _layout_to_markdown(payload)

    _emit(text, out, console, what="layout")
    return 0


def run_summary(
    snapshot_path: Path,
    *,
    lenient: bool = False,
    top: int = 10,
    fmt: str = "md",
    out: Path | None = None,
) -> int:
    """Describe a snapshot: counts per category and relationship, best-connected components."""
    console = Console(stderr=True)

    snapshot = load_snapshot(snapshot_path)
    graph = snapshot.build(lenient=lenient)
    payload = _summarize_graph(graph, title=f"Metadata graph ({snapshot_path.name})", top=top)
    payload["skipped_records"] = list(snapshot.skipped)

    if fmt == "rich":
        if out:
            rich_console = Console(record=True)
            _print_summary_rich(payload, console=rich_console)
            out.write_text(rich_console.export_text(), encoding="utf-8")
            console.print(f"Wrote summary output to {out}", style="green")
        else:
            _print_summary_rich(payload, console=Console())
        return 0

    if fmt == "json":
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
    else:
        text = _summary_to_markdown(payload)

    _emit(text, out, console, what="summary")
    return 0


def _emit(text: str, out: Path | None, console: Console, *, what: str) -> None:
    if out:
        out.write_text(text, encoding="utf-8")
        console.print(f"Wrote {what} output to {out}", style="green")
    else:
        print(text, end="" if text.endswith("\n") else "\n")


# -- payloads ----------------------------------------------------------------


def _summarize_graph(g: Graph, *, title: str, top: int) -> dict:
    rows = []
    for n in g.nodes:
        rows.append(
            {
                "id": n.id,
                "name": n.display_name,
                "category": n.category.value,
                "in_degree": len(g.in_edges(n.id)),
                "out_degree": len(g.out_edges(n.id)),
                "degree": g.degree(n.id),
            }
        )
    rows.sort(key=lambda r: (-r["degree"], g.order_of(r["id"])))

    categories = g.category_counts()
    relationship_types = Counter(e.relationship_type for e in g.edges)
    return {
        "title": title,
        "node_count": len(g.nodes),
        "edge_count": len(g.edges),
        "categories": {c.value: count for c, count in categories.most_common()},
        "relationship_types": {t.value: count for t, count in relationship_types.most_common()},
        "top_degree": rows[: max(0, top)],
        "violations": [v.to_dict() for v in g.violations],
    }


def _layout_payload(g: Graph, result: LayoutResult) -> dict:
    rows = []
    for n in g.nodes:
        state = result.positions[n.id]
        row = {
            "id": n.id,
            "name": n.display_name,
            "category": n.category.value,
            "x": round(state.x, 2),
            "y": round(state.y, 2),
            "radius": round(state.radius, 2),
        }
        if n.id in result.rings:
            row["ring"] = result.rings[n.id]
        if isinstance(result, FlowLayoutResult):
            hint = result.node_hints[n.id]
            row["rank"] = hint.rank
            row["order"] = hint.order
            row["height"] = round(hint.height, 2)
        rows.append(row)

    payload = {
        "title": f"{result.kind.value.capitalize()} layout",
        "kind": result.kind.value,
        "node_count": len(g.nodes),
        "edge_count": len(g.edges),
        "run_id": result.run_id,
        "ticks": result.tick,
        "settled": result.settled,
        "timed_out": result.timed_out,
        "bounding_box": result.bounding_box.to_dict(),
        "nodes": rows,
        "warnings": list(result.warnings),
        "graph_violations": [v.to_dict() for v in g.violations],
    }
    if isinstance(result, FlowLayoutResult):
        payload["crossings"] = result.crossings
        payload["back_edges"] = [
            {"source": h.source, "target": h.target, "type": h.relationship_type.value}
            for h in result.edge_hints
            if h.is_back_edge
        ]
        payload["flow_violations"] = [v.to_dict() for v in result.violations]
    return payload


# -- markdown ----------------------------------------------------------------


def _summary_to_markdown(payload: dict) -> str:
    lines: list[str] = []
    lines.append(f"## {payload['title']}")
    lines.append("")
    lines.append(f"- Components: {payload['node_count']}")
    lines.append(f"- Relationships: {payload['edge_count']}")
    lines.append("")

    lines.append("### Categories")
    lines.append("")
    lines.append("| Category | Count |")
    lines.append("|---|---:|")
    for name, count in payload["categories"].items():
        lines.append(f"| {name} | {count} |")
    lines.append("")

    if payload["relationship_types"]:
        lines.append("### Relationship types")
        lines.append("")
        lines.append("| Type | Count |")
        lines.append("|---|---:|")
        for name, count in payload["relationship_types"].items():
            lines.append(f"| {name} | {count} |")
        lines.append("")

    lines.append("### Most connected")
    lines.append("")
    lines.append("| Component | Category | In | Out |")
    lines.append("|---|---|---:|---:|")
    for r in payload["top_degree"]:
        lines.append(f"| `{r['id']}` | {r['category']} | {r['in_degree']} | {r['out_degree']} |")
    lines.append("")

    problems = [v["message"] for v in payload["violations"]] + payload.get("skipped_records", [])
    if problems:
        lines.append("### Dropped records")
        lines.append("")
        for message in problems:
            lines.append(f"- {message}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _layout_to_markdown(payload: dict) -> str:
    lines: list[str] = []
    lines.append(f"## {payload['title']}")
    lines.append("")
    lines.append(f"- Nodes: {payload['node_count']}")
    lines.append(f"- Edges: {payload['edge_count']}")
    status = "settled" if payload["settled"] else ("timed out" if payload["timed_out"] else "running")
    lines.append(f"- Status: {status} after {payload['ticks']} ticks")
    if "crossings" in payload:
        lines.append(f"- Crossings: {payload['crossings']}")
    lines.append("")

    extra = [k for k in ("ring", "rank", "order") if any(k in r for r in payload["nodes"])]
    header = "| Node | Category | x | y |" + "".join(f" {k.capitalize()} |" for k in extra)
    lines.append(header)
    lines.append("|---|---|---:|---:|" + "---:|" * len(extra))
    for r in payload["nodes"]:
        cells = "".join(f" {r.get(k, '')} |" for k in extra)
        lines.append(f"| `{r['id']}` | {r['category']} | {r['x']:.2f} | {r['y']:.2f} |{cells}")
    lines.append("")

    for key, title in (("back_edges", "Back-edges"), ("flow_violations", "Flow conservation")):
        items = payload.get(key) or []
        if not items:
            continue
        lines.append(f"### {title}")
        lines.append("")
        for item in items:
            if key == "back_edges":
                lines.append(f"- `{item['source']}` -> `{item['target']}` ({item['type']})")
            else:
                lines.append(f"- `{item['node_id']}`: in {item['incoming']:g}, out {item['outgoing']:g}")
        lines.append("")

    for warning in payload["warnings"]:
        lines.append(f"> {warning}")

    return "\n".join(lines).rstrip() + "\n"


# -- rich --------------------------------------------------------------------


def _print_summary_rich(payload: dict, *, console: Console) -> None:
    console.print(f"[bold]{payload['title']}[/bold]")
    console.print(f"Components: {payload['node_count']}  Relationships: {payload['edge_count']}")
    console.print()

    t = Table(title="Categories", show_header=True, header_style="bold")
    t.add_column("Category", style="cyan", no_wrap=True)
    t.add_column("Count", justify="right")
    for name, count in payload["categories"].items():
        t.add_row(name, str(count))
    console.print(t)
    console.print()

    t = Table(title="Most connected", show_header=True, header_style="bold")
    t.add_column("Component", style="cyan", no_wrap=True)
    t.add_column("Category")
    t.add_column("In", justify="right")
    t.add_column("Out", justify="right")
    for r in payload["top_degree"]:
        t.add_row(r["id"], r["category"], str(r["in_degree"]), str(r["out_degree"]))
    console.print(t)

    for v in payload["violations"]:
        console.print(f"[yellow]dropped[/yellow] {v['message']}")


def _print_layout_rich(payload: dict, *, console: Console) -> None:
    console.print(f"[bold]{payload['title']}[/bold]")
    console.print(f"Nodes: {payload['node_count']}  Edges: {payload['edge_count']}  Ticks: {payload['ticks']}")
    console.print()

    t = Table(show_header=True, header_style="bold")
    t.add_column("Node", style="cyan", no_wrap=True)
    t.add_column("Category")
    t.add_column("x", justify="right")
    t.add_column("y", justify="right")
    t.add_column("Ring/Rank", justify="right")
    for r in payload["nodes"]:
        level = r.get("ring", r.get("rank", ""))
        t.add_row(r["id"], r["category"], f"{r['x']:.1f}", f"{r['y']:.1f}", str(level))
    console.print(t)

    for v in payload.get("flow_violations", []):
        console.print(f"[yellow]flow[/yellow] {v['node_id']}: in {v['incoming']:g}, out {v['outgoing']:g}")


# -- svg ---------------------------------------------------------------------


def _to_svg(g: Graph, result: LayoutResult, *, title: str) -> str:
    """Render a static preview of a layout result."""
    bg = "#0f1115"
    text_color = "#e6e6e6"
    border = "#3a4154"
    margin = 40.0

    box = result.bounding_box
    width = max(box.width, 1.0) + margin * 2
    height = max(box.height, 1.0) + margin * 2 + 30
    ox = margin - box.min_x
    oy = margin + 30 - box.min_y

    def esc(s: str) -> str:
        return html.escape(s, quote=True)

    def bezier(x1: float, y1: float, x2: float, y2: float) -> str:
        ctrl = max(20.0, abs(x2 - x1) * 0.5)
        return f"M {x1:.1f},{y1:.1f} C {x1 + ctrl:.1f},{y1:.1f} {x2 - ctrl:.1f},{y2:.1f} {x2:.1f},{y2:.1f}"

    parts: list[str] = []
    parts.append(
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width:.0f}" height="{height:.0f}" '
        f'viewBox="0 0 {width:.0f} {height:.0f}" style="background:{bg}">'
    )
    parts.append(
        f'<text x="{margin}" y="24" fill="{text_color}" font-family="Helvetica" font-size="16">{esc(title)}</text>'
    )

    parts.append('<g id="edges" stroke-linecap="round" fill="none">')
    if isinstance(result, FlowLayoutResult):
        hints = result.node_hints
        for e in result.edge_hints:
            s, t = hints[e.source], hints[e.target]
            x1, x2 = s.x + s.width + ox, t.x + ox
            path_d = bezier(x1, e.source_y + oy, x2, e.target_y + oy)
            dash = ' stroke-dasharray="6,4"' if e.is_back_edge else ""
            parts.append(
                f'<path d="{path_d}" stroke="{e.relationship_type.color}" '
                f'stroke-width="{max(1.0, e.thickness):.1f}" opacity="0.45"{dash}/>'
            )
    else:
        for e in g.edges:
            if e.is_self_loop:
                continue
            a, b = result.positions[e.source], result.positions[e.target]
            dash = f' stroke-dasharray="{e.relationship_type.dash}"' if e.relationship_type.dash else ""
            stroke_width = 2.0 if e.relationship_type is RelationshipType.MASTER_DETAIL else 1.2
            parts.append(
                f'<line x1="{a.x + ox:.1f}" y1="{a.y + oy:.1f}" x2="{b.x + ox:.1f}" y2="{b.y + oy:.1f}" '
                f'stroke="{e.relationship_type.color}" stroke-width="{stroke_width}" opacity="0.8"{dash}/>'
            )
    parts.append("</g>")

    parts.append('<g id="nodes">')
    for n in g.nodes:
        fill = n.category.color
        label = esc(truncate_label(n.display_name))
        if isinstance(result, FlowLayoutResult):
            h = result.node_hints[n.id]
            x, y = h.x + ox, h.y + oy
            parts.append(
                f'<rect x="{x:.1f}" y="{y:.1f}" width="{h.width:.1f}" height="{h.height:.1f}" '
                f'fill="{fill}" stroke="{border}"/>'
            )
            parts.append(
                f'<text x="{x - 6:.1f}" y="{y + h.height / 2 + 4:.1f}" fill="{text_color}" '
                f'font-family="Helvetica" font-size="11" text-anchor="end">{label}</text>'
            )
            continue
        s = result.positions[n.id]
        x, y, r = s.x + ox, s.y + oy, s.radius
        parts.append(f'<circle cx="{x:.1f}" cy="{y:.1f}" r="{r:.1f}" fill="{fill}" stroke="{border}"/>')
        parts.append(
            f'<text x="{x:.1f}" y="{y + r + 14:.1f}" fill="{text_color}" font-family="Helvetica" '
            f'font-size="11" text-anchor="middle">{label}</text>'
        )
    parts.append("</g>")
    parts.append("</svg>")
    return "\n".join(parts) + "\n"
