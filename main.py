import asyncio
from loguru import logger

from config.settings import settings
from database.base import init_db, engine
from services.api_server import run_api_server


async def main():
    """Главная функция запуска API"""

    # Настройка логирования
    logger.add(
        "logs/api.log",
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    )

    logger.info("🚀 Запуск Vesla Rent-a-Car API...")

    try:
        # Инициализация базы данных
        logger.info("🗄️ Инициализация базы данных...")
        await init_db()
        logger.info("✅ База данных инициализирована")

        # Запуск HTTP сервера
        await run_api_server(settings.api_host, settings.api_port)

    except Exception as e:
        logger.error(f"❌ Ошибка при запуске: {e}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("👋 API остановлен пользователем")
    except Exception as e:
        logger.error(f"💥 Критическая ошибка: {e}")
        raise
