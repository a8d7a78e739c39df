"""Layout engines: force simulation, circular/radial placement and Sankey flow."""

from .circular import bfs_rings, layout_circular
from .config import CircularConfig, ForceConfig, LayoutConfig, SankeyConfig, load_layout_config
from .force import ForceSimulation, SimulationStatus, node_radius
from .sankey import layout_sankey
from .session import AsyncioScheduler, LayoutSession, ManualScheduler, Scheduler, available_layouts

__all__ = [
    "AsyncioScheduler",
    "CircularConfig",
    "ForceConfig",
    "ForceSimulation",
    "LayoutConfig",
    "LayoutSession",
    "ManualScheduler",
    "SankeyConfig",
    "Scheduler",
    "SimulationStatus",
    "available_layouts",
    "bfs_rings",
    "layout_circular",
    "layout_sankey",
    "load_layout_config",
    "node_radius",
]
