"""Monitor subsystem — accounting engine, checker, scheduler, ledger store."""

from .accountant import UptimeAccountant
from .checker import HealthChecker, HttpProbe
from .clock import ManualClock, SystemClock
from .models import MonitorState, ProbeResult, Status, UptimeLedger
from .scheduler import AsyncioTimer, ManualTimer, ProbeScheduler, next_boundary
from .service import UptimeMonitor
from .store import LedgerStore
