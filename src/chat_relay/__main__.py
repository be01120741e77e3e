"""
Main entry point for the chat relay.

Can be called with: python -m chat_relay
"""

import argparse
import logging

import uvicorn


def main():
    """Main entry point for the chat relay server."""
    parser = argparse.ArgumentParser(
        description="Chat Relay - streaming completions with inline tool calls"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface to bind (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port to run the server on (default: 3000)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from .app import app

    logging.getLogger(__name__).info("Starting chat relay...")
    logging.getLogger(__name__).info(
        f"Use http://localhost:{args.port}/messages for API calls"
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
