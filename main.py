import logging

from nicegui import ui, app

from src.services.scanner.ocr import engine_registry
from src.ui.home import home_page

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@ui.page('/')
def index():
    home_page()


app.on_shutdown(engine_registry.shutdown)

if __name__ in {"__main__", "__mp_main__"}:
    ui.run(title='Raffle Winners', dark=True, port=8080, reload=False)
