"""
MineBot - chat command bot for game servers.
"""

__version__ = "0.1.0"
__logo__ = "⛏"
