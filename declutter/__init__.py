"""
Declutter module for event maps.

Chooses which geolocated events are drawn as full markers in the current
viewport:
- Competition ranking from mutable scores
- Grid-indexed, rank-priority collision resolution
- Two-phase render tiers (global top five, local top ten)
- Optional grid-density clustering
"""

from declutter.protocols import Projector
from declutter.projectors import WebMercatorProjector
from declutter.types import (
    Cluster,
    Event,
    GeoBounds,
    GeoPoint,
    PixelPoint,
    ResolutionResult,
    Tier,
    TieredEvent,
    Viewport,
)
from declutter.errors import (
    CollisionEvaluationError,
    DeclutterConfigError,
    DeclutterError,
    EventValidationError,
    GeometryUnavailableError,
    IndexStaleError,
)
from declutter.settings import DeclutterSettings
from declutter.ranking import Interaction, ScorePolicy, apply_ranks, compute_ranks
from declutter.spatial_index import SpatialIndex
from declutter.footprint import Footprint, FootprintModel
from declutter.tiers import TierAssigner
from declutter.resolver import DeclutterResolver
from declutter.clustering import ClusterAction, ClusterActionKind, ClusterAggregator
from declutter.icon_cache import IconCache, MarkerIcon
from declutter.pipeline import DeclutterPipeline
from declutter.engine import DeclutterEngine

__all__ = [
    # Protocols
    'Projector',
    # Types
    'Cluster',
    'Event',
    'GeoBounds',
    'GeoPoint',
    'PixelPoint',
    'ResolutionResult',
    'Tier',
    'TieredEvent',
    'Viewport',
    # Errors
    'CollisionEvaluationError',
    'DeclutterConfigError',
    'DeclutterError',
    'EventValidationError',
    'GeometryUnavailableError',
    'IndexStaleError',
    # Components
    'DeclutterSettings',
    'Interaction',
    'ScorePolicy',
    'apply_ranks',
    'compute_ranks',
    'SpatialIndex',
    'Footprint',
    'FootprintModel',
    'TierAssigner',
    'DeclutterResolver',
    'ClusterAction',
    'ClusterActionKind',
    'ClusterAggregator',
    'IconCache',
    'MarkerIcon',
    # Pipeline
    'DeclutterPipeline',
    'DeclutterEngine',
    # Built-in components
    'WebMercatorProjector',
]
