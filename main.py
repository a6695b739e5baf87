"""
Main application for screenshot-imgur-sync.

This application monitors the screenshot folder for new screenshots and
automatically uploads them to Imgur, either anonymously or to the
account logged in with the ``login`` command.
"""

import argparse
import logging
import threading
import webbrowser
from typing import List, Optional

from config import config
from imgur_client import ImgurClient
from screenshot_uploader import ScreenshotUploader
from settings_store import SettingsStore


def login(client: ImgurClient) -> int:
    """Run the PIN based Imgur login flow."""
    logger = logging.getLogger(__name__)

    print(f"Authorize this application at:\n  {client.authorization_url}")
    webbrowser.open(client.authorization_url)
    pin = input("Enter the PIN shown by Imgur: ").strip()
    if not pin:
        logger.error("No PIN entered")
        return 1

    done = threading.Event()
    errors = []

    def on_failure(error):
        errors.append(error)
        done.set()

    client.authenticate(pin, done.set, on_failure)

    # The token request has its own timeout, this only guards against a stuck worker
    if not done.wait(config.auth_timeout):
        logger.error(f"Login timed out after {config.auth_timeout} seconds")
        return 1
    if errors:
        logger.error(f"Login failed: {errors[0]}")
        return 1

    print(f"Logged in as {client.username}")
    return 0


def logout(client: ImgurClient) -> int:
    client.delete_credentials()
    print("Logged out")
    return 0


def status(client: ImgurClient) -> int:
    if client.is_authenticated:
        print(f"Logged in as {client.username}")
    else:
        print("Not logged in, screenshots are uploaded anonymously")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload new screenshots to Imgur.")
    parser.add_argument(
        'command',
        nargs='?',
        default='run',
        choices=['run', 'login', 'logout', 'status'],
        help="run the uploader (default), log in or out of Imgur, or show the login status"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point of the application."""
    args = build_parser().parse_args(argv)

    try:
        if args.command == 'run':
            uploader = ScreenshotUploader()
            uploader.start()
            return 0

        client = ImgurClient(config.client_id, config.client_secret, store=SettingsStore())
        try:
            commands = {'login': login, 'logout': logout, 'status': status}
            return commands[args.command](client)
        finally:
            client.close()

    except KeyboardInterrupt:
        logger = logging.getLogger(__name__)
        logger.info("\nApplication interrupted by user.")
        return 0
    except Exception as e:
        logger = logging.getLogger(__name__)
        logger.error(f"Application error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    exit(main())
