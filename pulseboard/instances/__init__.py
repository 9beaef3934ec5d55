"""Instance tracking — data model, registry, config ordering and reconciliation."""

from .models import ApiGroup, Check, Endpoint, InstancesDocument, Kind
from .ordering import extract_group_order
from .reconciler import FetchError, ParseError, ReconcileResult, Reconciler
from .registry import InstanceRegistry
