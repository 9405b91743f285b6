# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Pull an image and print each progress event as it arrives.

Usage:
    python examples/image_pull.py busybox:latest
"""

import asyncio
import sys

import dockwire


async def main(image: str) -> int:
    async with dockwire.Docker.from_env() as docker:
        try:
            async for event in docker.images.pull(dockwire.PullOptions(image=image)):
                if isinstance(event, dockwire.BuildError):
                    print(f"error: {event.detail or event.error}")
                    return 1
                if isinstance(event, dockwire.PullStatus):
                    line = event.status if event.id is None else f"{event.id}: {event.status}"
                    print(f"{line} {event.progress or ''}".rstrip())
        except dockwire.DockwireError as exc:
            print(f"pull failed: {exc}")
            return 1
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:  # noqa: PLR2004
        print("usage: image_pull.py IMAGE")
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1])))
