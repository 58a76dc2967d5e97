from nicegui import ui
import logging
from typing import List

from src.core import config_manager
from src.core.constants import COLOUR_HEX
from src.core.errors import TicketValidationError
from src.core.models import RaffleColour, RaffleTicket, COLOURS
from src.services.scanner import SCANNER_AVAILABLE, OCR_AVAILABLE
from src.services.ticket_list import ticket_list
from src.ui.camera_js import JS_CAMERA_CODE, CAMERA_CSS
from src.ui.qr_dialogs import QrExportDialog, QrImportDialog
from src.ui.scanner_dialog import ScannerDialog

logger = logging.getLogger(__name__)


class HomePage:
    def __init__(self):
        config = config_manager.load_config()
        try:
            self.selected_colour = RaffleColour(config.get('default_colour', 'Red'))
        except ValueError:
            self.selected_colour = RaffleColour.RED
        self.number_input = None
        self.active_dialog = None

    def add_ticket(self):
        if not self.number_input or not (self.number_input.value or '').strip():
            return
        try:
            ticket_list.add(self.number_input.value, self.selected_colour)
        except TicketValidationError as e:
            ui.notify(str(e), type='negative')
            return
        self.number_input.value = ''
        self.number_input.run_method('focus')

    def on_scan_complete(self, number: str, colour: RaffleColour):
        ticket_list.add(number, colour)

    def on_import(self, tickets: List[RaffleTicket]):
        ticket_list.import_tickets(tickets)

    async def open_scanner(self):
        if not SCANNER_AVAILABLE:
            ui.notify("Scanner dependencies not found.", type='negative')
            return
        if not OCR_AVAILABLE:
            ui.notify("Text recognition (easyocr) is not installed.", type='negative')
            return
        self.active_dialog = ScannerDialog(self.on_scan_complete)
        await self.active_dialog.start()

    async def open_import(self):
        if not SCANNER_AVAILABLE:
            ui.notify("Scanner dependencies not found.", type='negative')
            return
        self.active_dialog = QrImportDialog(self.on_import)
        await self.active_dialog.start()

    def open_export(self):
        QrExportDialog(ticket_list.tickets).open()

    def close_camera(self):
        """Releases the camera of an open scanner or import dialog."""
        if self.active_dialog is not None:
            self.active_dialog.flow.close()
            self.active_dialog = None

    @ui.refreshable
    def render_tickets(self):
        groups = ticket_list.grouped()
        if not groups:
            ui.label('No winners yet...').classes('font-mono text-gray-500 p-8')
            return

        for colour, tickets in groups:
            with ui.column().classes('w-full gap-1'):
                ui.label(colour.value).classes('font-bold').style(f'color: {COLOUR_HEX[colour]}')
                with ui.row().classes('gap-2 flex-wrap'):
                    for ticket in tickets:
                        ui.button(ticket.number, on_click=lambda e, tid=ticket.id: ticket_list.remove(tid)) \
                            .props('unelevated no-caps') \
                            .style(f'background-color: {COLOUR_HEX[colour]} !important; color: black') \
                            .tooltip('Click to remove')


def home_page():
    page = HomePage()

    refresh = page.render_tickets.refresh

    def cleanup():
        ticket_list.unregister_listener(refresh)
        page.close_camera()

    ticket_list.register_listener(refresh)
    ui.context.client.on_disconnect(cleanup)

    ui.add_head_html(JS_CAMERA_CODE)
    ui.add_head_html(CAMERA_CSS)

    with ui.column().classes('w-full items-center p-4 gap-4'):
        ui.label('R A F F L E   W I N N E R S').classes('text-2xl font-bold font-mono')

        with ui.row().classes('items-center gap-2 flex-wrap'):
            page.number_input = ui.input(placeholder='Ticket #').classes('w-40 font-mono') \
                .on('keydown.enter', page.add_ticket)
            ui.select([c.value for c in COLOURS], value=page.selected_colour.value,
                      on_change=lambda e: setattr(page, 'selected_colour', RaffleColour(e.value))).classes('w-32')
            ui.button('Add', icon='edit', on_click=page.add_ticket)
            ui.button('Scan', icon='photo_camera', on_click=page.open_scanner).props('color=accent text-color=black')
            ui.button('Export', icon='qr_code', on_click=page.open_export).props('color=secondary')
            ui.button('Import', icon='qr_code_scanner', on_click=page.open_import).props('color=secondary')

        with ui.column().classes('w-full max-w-4xl gap-4'):
            page.render_tickets()
