"""Allow ``python -m steam_animation`` to control the daemon."""

from __future__ import annotations


def main() -> None:
    from steam_animation import main as daemon_main
    daemon_main()


if __name__ == "__main__":
    main()
