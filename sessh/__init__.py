"""
sessh - persistent remote tmux sessions driven by one-shot commands.
"""

__version__ = "0.1.0"
