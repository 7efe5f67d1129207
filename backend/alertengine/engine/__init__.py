"""
PURPOSE: Strategy evaluation core: normalize, match, score, dispatch.

Nothing in this package touches the database or HTTP directly; it talks to
stores and notifiers through the protocols in engine.ports.
"""
