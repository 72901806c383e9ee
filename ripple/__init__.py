"""ripple: real-time code impact analysis."""

from .engine import ImpactEngine
from .graph import DependencyGraph
from .models import ContentChange, EditImpact, Symbol

__version__ = "0.1.0"

__all__ = ["ContentChange", "DependencyGraph", "EditImpact", "ImpactEngine", "Symbol", "__version__"]
