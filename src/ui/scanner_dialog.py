from nicegui import ui
import logging
from typing import Callable

from src.core import config_manager
from src.core.models import RaffleColour, COLOURS
from src.services.scanner.capture import (
    ScannerFlow, ScanStatus, Ready, Confirm, Failed
)
from src.services.scanner.device import DeviceSession, JavaScriptBridge

logger = logging.getLogger(__name__)

VIDEO_ID = 'scanner-video'
GUIDE_ID = 'scanner-guide'


class ScannerDialog(ui.dialog):
    def __init__(self, on_scan_complete: Callable[[str, RaffleColour], None]):
        super().__init__()
        self.props('maximized persistent')

        config = config_manager.load_config()
        client = ui.context.client
        device = DeviceSession(JavaScriptBridge(client), VIDEO_ID, timeout=config['camera_timeout'])
        self.flow = ScannerFlow(
            device,
            on_scan_complete,
            constraints=config_manager.get_camera_constraints(),
            guide_id=GUIDE_ID,
        )
        self.last_status = self.flow.status
        self.flow.register_listener(self.on_state_change)
        self.on('hide', self.dispose)

        with self, ui.card().classes('w-full h-full p-0 bg-gray-900'):
            with ui.row().classes('w-full items-center justify-between p-2'):
                ui.label('[ TICKET SCANNER ]').classes('text-lg font-bold font-mono')
                ui.button('[X]', on_click=self.close_scanner).props('flat color=white')

            with ui.element('div').classes('raffle-camera'):
                ui.html(f'<video id="{VIDEO_ID}" autoplay playsinline muted></video>', sanitize=False)
                ui.html(f'<div id="{GUIDE_ID}" class="raffle-guide ticket"></div>', sanitize=False)

            with ui.column().classes('w-full p-4 gap-2'):
                self.render_controls()

    def on_state_change(self, state):
        # Editing the number or colour must not rebuild the inputs
        if state.status == self.last_status:
            return
        self.last_status = state.status
        if state.status == ScanStatus.CONFIRM:
            ui.run_javascript('if (navigator.vibrate) navigator.vibrate(100);')
        self.render_controls.refresh()

    async def start(self):
        self.open()
        ui.timer(0.3, self.flow.open, once=True)

    def close_scanner(self):
        self.flow.close()
        self.close()

    def dispose(self):
        """Stops the camera and removes the dialog from the page once it is hidden."""
        self.flow.close()
        self.delete()

    def confirm(self):
        error = self.flow.confirm()
        if error:
            ui.notify(error, type='negative')
        else:
            ui.notify('Ticket added', type='positive', timeout=1500)

    @ui.refreshable
    def render_controls(self):
        state = self.flow.state
        status = state.status

        if status in (ScanStatus.IDLE, ScanStatus.CAMERA_LOADING):
            with ui.row().classes('items-center gap-2'):
                ui.spinner(size='sm')
                ui.label('Starting camera...')

        elif isinstance(state, Failed):
            ui.label(state.message).classes('text-red-400')
            ui.button('[RETRY]', on_click=self.flow.retry_camera).props('color=warning')

        elif isinstance(state, Ready):
            ui.label('Position ticket number in frame').classes('text-xs text-gray-400')
            if state.message:
                ui.label(state.message).classes('text-orange-400')
            ui.button('[CAPTURE]', on_click=self.flow.capture) \
                .classes('w-full py-4 text-lg font-bold').props('color=accent text-color=black icon=camera_alt')

        elif status in (ScanStatus.CAPTURING, ScanStatus.PROCESSING):
            ui.label('Reading ticket...')
            ui.linear_progress(show_value=False).classes('w-full') \
                .bind_value_from(self.flow.recognizer, 'progress', backward=lambda p: (p or 0) / 100)

        elif isinstance(state, Confirm):
            ui.input('Ticket #', value=state.number,
                     on_change=lambda e: self.flow.edit_number(e.value or '')).classes('w-full text-xl font-mono')
            ui.toggle([c.value for c in COLOURS], value=state.colour.value,
                      on_change=lambda e: self.flow.select_colour(e.value)).props('no-caps')
            with ui.row().classes('w-full justify-end gap-2'):
                ui.button('[RETRY]', on_click=self.flow.retry).props('color=secondary')
                ui.button('[ADD TICKET]', on_click=self.confirm).props('color=positive')
