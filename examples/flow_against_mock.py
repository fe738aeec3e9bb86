import contextlib
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

import anyio

from oidc_debug.flow import start
from oidc_debug.mock import MockProvider, open_url


async def main() -> None:
    """
    Runs a complete authorization code flow against the in-process mock provider.

    The mock serves on an ephemeral port, and ``open_url`` follows the redirects a
    browser would, so the whole dance completes without any user interaction.
    """
    print(">>> Starting mock OIDC provider")

    async with MockProvider().running() as base_url:
        print(f">>> Mock provider at {base_url}")

        outcome = await start(
            {
                "issuerURL": f"{base_url}/",
                "clientID": "testing",
                "clientSecret": "123456",
                "clientPort": 4447,
            },
            launcher=open_url,
        )

    print(f">>> Flow {outcome.status} after {outcome.exchange_count} code exchange(s)")


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        anyio.run(main)
