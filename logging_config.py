"""
Logging setup for the tunnelling experiment.

Modules log through children of :data:`LOGGER_NAMESPACE`
(``quantum_tunneling.physics``, ``quantum_tunneling.simulation``,
``quantum_tunneling.config`` ...), so one call here controls all of them.
"""
import logging
import sys
from typing import Optional

LOGGER_NAMESPACE = "quantum_tunneling"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the experiment's root logger.

    Args:
        level: Threshold for the namespace and its handlers. ``logging.DEBUG``
            also reports emissions dropped at the particle cap.
        log_file: Optional path; the file is truncated on every start.

    Returns:
        The ``quantum_tunneling`` logger.
    """
    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(level)

    # A restarted front end must not print every record twice
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.info("Logging to %s", log_file or "stdout")
    return root
