# Application Layer
# =================
# Orchestrates the WhatsApp session: pairing and reconnection
# (lifecycle.py) and the logout sequence run on shutdown (shutdown.py).

from .lifecycle import LifecycleController, LifecycleState, print_pairing_code
from .shutdown import safe_logout, shutdown_session

__all__ = [
    "LifecycleController",
    "LifecycleState",
    "print_pairing_code",
    "safe_logout",
    "shutdown_session",
]
