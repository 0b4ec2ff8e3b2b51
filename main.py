import asyncio

from core.bot_core import Bot


async def main():
    bot = Bot.create()
    try:
        await bot.start()
    finally:
        await bot.stop()

if __name__ == "__main__":
    asyncio.run(main())
