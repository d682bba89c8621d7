"""StatusKeeper — uptime/downtime accounting for a single monitored endpoint."""

__version__ = "0.1.0"
