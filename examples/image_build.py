# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Build an image from a local directory, streaming the build output.

The directory is archived (honouring its .dockerignore) and uploaded while
it is being read.

Usage:
    python examples/image_build.py ./context myimage:dev
"""

import asyncio
import sys

import dockwire


async def main(path: str, tag: str) -> int:
    async with dockwire.Docker.from_env() as docker:
        try:
            async for event in docker.images.build(dockwire.BuildOptions(path=path, tag=tag)):
                if isinstance(event, dockwire.BuildStream):
                    print(event.stream, end="")
                elif isinstance(event, dockwire.BuildDigest):
                    print(f"image id: {event.id}")
                elif isinstance(event, dockwire.BuildError):
                    print(f"build failed: {event.detail or event.error}")
                    return 1
        except dockwire.DockwireError as exc:
            print(f"build failed: {exc}")
            return 1
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 3:  # noqa: PLR2004
        print("usage: image_build.py PATH TAG")
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1], sys.argv[2])))
