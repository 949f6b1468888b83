"""Example: asyncio line echo server and client in one process."""

import asyncio
import logging

from lineconn import AsyncConnection
from lineconn.transports.tcp.async_server import AsyncLineServer


async def main():
    server = AsyncLineServer("127.0.0.1", 0, lambda line, address: f"echo: {line}")
    await server.start()
    try:
        async with AsyncConnection() as connection:
            await connection.connect(*server.address)
            for message in ("hello", "world"):
                await connection.send(message)
                print(await connection.receive_line())
    finally:
        await server.stop()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
