"""framewalk: tiered snapshots and cross-frame element references for nested iframes."""

__version__ = "0.1.0"
