"""
Papyrus - An asynchronous command graph for remote-controlled agents.

Commands are issued to a remote session one step at a time; their replies
arrive later, out of band and possibly out of order. A StatefulCommandGraph
ticks the active named state, and the correlator routes each reply back to
the node that is waiting for it.
"""

__version__ = "0.1.0"
