"""Connect to a running service's /ws endpoint and log a few frames."""
import argparse
import asyncio
import json
import logging

import websockets

from particlesim.logging_setup import setup_logging

logger = logging.getLogger("watch_stream")


async def watch(uri: str, frames: int):
    logger.info("Connecting to %s...", uri)
    async with websockets.connect(uri) as websocket:
        logger.info("Connected")
        for i in range(frames):
            data = json.loads(await websocket.recv())

            if data["type"] != "state":
                logger.warning("Unexpected message type %s: %s", data["type"], data)
                continue

            payload = data["payload"]
            particles = payload["particles"]
            logger.info(
                "Frame %d: %d particles, %d colors",
                payload["frame"], len(particles), len(payload["colors"]),
            )
            if particles:
                p = particles[0]
                logger.info("  First particle: x=%.2f, y=%.2f, color=%s", p["x"], p["y"], p["color"])


def main():
    parser = argparse.ArgumentParser(description='Watch the simulation stream')
    parser.add_argument('--uri', type=str, default='ws://127.0.0.1:8000/ws')
    parser.add_argument('--frames', type=int, default=3)
    args = parser.parse_args()

    setup_logging()
    asyncio.run(watch(args.uri, args.frames))


if __name__ == "__main__":
    main()
