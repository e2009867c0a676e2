"""
Background workers keeping slow key derivation off the interactive thread.
"""

import logging

from PyQt5.QtCore import QThread, pyqtSignal

from .controller import AccessController

logger = logging.getLogger(__name__)


class UnlockWorker(QThread):
    """Worker thread for the KDF part of an unlock attempt.

    Only AccessController.authenticate() runs here. The receiver of
    `finished_auth` passes the outcome to complete_authentication() on the
    controller's own thread.
    """

    finished_auth = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(self, controller: AccessController, passphrase: str):
        super().__init__()
        self.controller = controller
        self._passphrase = passphrase

    def run(self):
        """Run the verification and key derivation."""
        try:
            outcome = self.controller.authenticate(self._passphrase)
            self.finished_auth.emit(outcome)
        except Exception as e:
            logger.error(f"Unlock attempt failed: {e}")
            self.error.emit(str(e))
        finally:
            self._passphrase = ""
