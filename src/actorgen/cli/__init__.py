"""
CLI Subpackage.

Modules:
    - ``__main__``: The argparse definition and dispatcher.
    - ``commands``: Handlers for ``compile``, ``inspect`` and ``run``.
"""
