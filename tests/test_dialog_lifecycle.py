import os
import sys
import unittest
from unittest.mock import MagicMock

# Add current directory to path so src can be imported
sys.path.append(os.getcwd())

from src.ui.home import HomePage
from src.ui.qr_dialogs import QrImportDialog
from src.ui.scanner_dialog import ScannerDialog


class TestDialogDisposal(unittest.TestCase):
    def test_hidden_dialogs_release_camera_and_delete_themselves(self):
        for dialog_class in (ScannerDialog, QrImportDialog):
            with self.subTest(dialog=dialog_class.__name__):
                dialog = MagicMock()
                dialog_class.dispose(dialog)

                dialog.flow.close.assert_called_once()
                dialog.delete.assert_called_once()


class TestHomePageCamera(unittest.TestCase):
    def test_close_camera_closes_active_flow_once(self):
        page = HomePage()
        dialog = MagicMock()
        page.active_dialog = dialog

        page.close_camera()
        page.close_camera()

        dialog.flow.close.assert_called_once()
        self.assertIsNone(page.active_dialog)

    def test_close_camera_without_dialog(self):
        page = HomePage()
        page.close_camera()
        self.assertIsNone(page.active_dialog)


if __name__ == '__main__':
    unittest.main()
