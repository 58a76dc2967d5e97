from nicegui import ui
import logging
from typing import Callable, List, Sequence

from src.core import config_manager
from src.core.models import RaffleTicket
from src.services.scanner.device import DeviceSession, JavaScriptBridge
from src.services.scanner.qr_import import ImportFlow, ImportStatus
from src.services.transfer import prepare_export

logger = logging.getLogger(__name__)

VIDEO_ID = 'qr-import-video'


class QrImportDialog(ui.dialog):
    def __init__(self, on_import: Callable[[List[RaffleTicket]], None]):
        super().__init__()
        self.props('maximized persistent')

        config = config_manager.load_config()
        client = ui.context.client
        device = DeviceSession(JavaScriptBridge(client), VIDEO_ID, timeout=config['camera_timeout'])
        self.flow = ImportFlow(
            device,
            on_import,
            constraints=config_manager.get_camera_constraints(),
            poll_interval=config['qr_poll_interval'],
            max_malformed=config['qr_max_malformed'],
        )
        self.flow.register_listener(self.on_status_change)
        self.on('hide', self.dispose)

        with self, ui.card().classes('w-full h-full p-0 bg-gray-900'):
            with ui.row().classes('w-full items-center justify-between p-2'):
                ui.label('[ IMPORT TICKETS ]').classes('text-lg font-bold font-mono')
                ui.button('[X]', on_click=self.close_import).props('flat color=white')

            with ui.element('div').classes('raffle-camera'):
                ui.html(f'<video id="{VIDEO_ID}" autoplay playsinline muted></video>', sanitize=False)
                ui.html('<div class="raffle-guide qr"></div>', sanitize=False)

            with ui.column().classes('w-full p-4 gap-2'):
                self.render_status()

    def on_status_change(self, status: ImportStatus):
        if status == ImportStatus.SUCCESS:
            ui.run_javascript('if (navigator.vibrate) navigator.vibrate(200);')
        self.render_status.refresh()

    async def start(self):
        self.open()
        ui.timer(0.3, self.flow.open, once=True)

    def close_import(self):
        self.flow.close()
        self.close()

    def dispose(self):
        self.flow.close()
        self.delete()

    def confirm(self):
        count = self.flow.confirm()
        if count:
            ui.notify(f"Imported {count} tickets", type='positive')
        self.close_import()

    @ui.refreshable
    def render_status(self):
        status = self.flow.status

        if status in (ImportStatus.IDLE, ImportStatus.CAMERA_LOADING):
            with ui.row().classes('items-center gap-2'):
                ui.spinner(size='sm')
                ui.label('Starting camera...')

        elif status == ImportStatus.SCANNING:
            ui.label('Point camera at QR code').classes('text-gray-400')

        elif status == ImportStatus.ERROR:
            ui.label(self.flow.error or 'Camera error').classes('text-red-400')
            ui.button('[RETRY]', on_click=self.flow.retry).props('color=warning')

        elif status == ImportStatus.SUCCESS and self.flow.tickets:
            ui.label(f"{len(self.flow.tickets):>3} TICKETS FOUND").classes('text-xl font-bold font-mono')
            with ui.row().classes('w-full justify-end gap-2'):
                ui.button('[SCAN AGAIN]', on_click=self.flow.scan_again).props('color=secondary')
                ui.button('[IMPORT]', on_click=self.confirm).props('color=positive')


class QrExportDialog(ui.dialog):
    def __init__(self, tickets: Sequence[RaffleTicket]):
        super().__init__()
        self.tickets = list(tickets)
        self.on('hide', self.delete)

        config = config_manager.load_config()
        with self, ui.card().classes('w-[480px] items-center bg-gray-900'):
            with ui.row().classes('w-full items-center justify-between'):
                ui.label('[ EXPORT TICKETS ]').classes('text-lg font-bold font-mono')
                ui.button('[X]', on_click=self.close).props('flat color=white')

            if not self.tickets:
                ui.label('No tickets to export...').classes('font-mono text-gray-400')
                return

            try:
                export = prepare_export(
                    self.tickets,
                    max_bytes=config['max_safe_bytes'],
                    level=config['qr_error_correction'],
                )
            except ValueError as e:
                logger.error(f"Export failed: {e}")
                ui.label(str(e)).classes('text-red-400')
                return

            if export.oversize:
                ui.label(f"Too many tickets ({export.ticket_count}) for single QR code.").classes('text-orange-400')
                if export.size > config['max_safe_bytes']:
                    ui.label(f"Payload is {export.size} bytes, limit is {config['max_safe_bytes']}.").classes('text-xs text-gray-400')
                else:
                    ui.label(f"Payload of {export.size} bytes does not fit at error correction level {config['qr_error_correction']}.").classes('text-xs text-gray-400')
                return

            with ui.element('div').classes('bg-white p-2').style('width: 400px; height: 400px'):
                ui.html(export.svg, sanitize=False).style('width: 100%; height: 100%')
            plural = 's' if export.ticket_count != 1 else ''
            ui.label(f"{export.ticket_count} ticket{plural}")
            ui.label('Scan this QR code on your laptop').classes('text-xs text-gray-400')
