from aiogram import Router

from santa.bot.handlers import exchange, exclusions, start

router = Router()
router.include_router(start.router)
router.include_router(exchange.router)
router.include_router(exclusions.router)
