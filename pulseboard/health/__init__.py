"""Health subsystem — probe engine, snapshot builder, broadcaster, scheduler."""

from .broadcaster import Broadcaster, Subscription
from .engine import Prober, probe_target, run_probe
from .scheduler import CycleScheduler
from .stats import BadgeStatus, Snapshot, badge_status, build_snapshot
