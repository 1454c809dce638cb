"""
ShardFuzz - wordlist-sharded ffuf orchestration with chat notifications
"""

__version__ = "1.0.0"
