import logging

import flet as ft

from app import create_app
from config import LOG_LEVEL
from core import bootstrap

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def main(page: ft.Page) -> None:
    container = await bootstrap()
    create_app(page, container)
    logger.info("OviManager started")


if __name__ == "__main__":
    ft.app(target=main)
