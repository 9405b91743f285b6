# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Pull an image, keeping a running total of compressed layer sizes.

A layer is counted the first time the daemon reports its size.

Usage:
    python examples/image_pull_layers.py busybox:latest
"""

import asyncio
import sys

import dockwire

MB = 1024 * 1024


async def main(image: str) -> int:
    layers: dict[str, int] = {}
    total_bytes = 0

    async with dockwire.Docker.from_env() as docker:
        try:
            async for event in docker.images.pull(dockwire.PullOptions(image=image)):
                print(".", end="", flush=True)
                if not isinstance(event, dockwire.PullStatus):
                    continue
                layer = event.layer_bytes()
                if layer is None or layer[0] in layers:
                    continue
                layer_id, size = layer
                layers[layer_id] = size
                total_bytes += size
                print(
                    f"\n{image} image layer {len(layers)} ({layer_id}) compressed bytes: "
                    f"{size} ({total_bytes / MB:.3f} MB total so far)"
                )
        except dockwire.DockwireError as exc:
            print(f"\nImage pull error: {exc}")

    print(f"\n{len(layers)} layers totalling {total_bytes / MB:.3f} MB")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:  # noqa: PLR2004
        print("usage: image_pull_layers.py IMAGE")
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1])))
