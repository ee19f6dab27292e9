"""treesync - one-way and bi-directional directory synchronization"""

__version__ = "1.0.0"
