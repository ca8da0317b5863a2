"""Reading, writing and replaying btrfs send streams."""

__version__ = "0.1.0"