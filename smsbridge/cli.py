"""
Command-line entry point for the SMS bridge.
"""

import sys
import logging

from .bridge import SmsMailBridge
from .config import load_config
from .version import __version__
from .exceptions import BridgeError

logger = logging.getLogger(__name__)


def main(argv=None):
    """Main entry point for CLI."""
    import argparse

    parser = argparse.ArgumentParser(
        description="smsbridge - forward SMS to email and email to SMS via a GSM modem",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  smsbridge bridge.yaml
  smsbridge bridge.yaml --port /dev/ttyUSB3
  smsbridge bridge.yaml -v
        """
    )

    parser.add_argument(
        "config",
        help="Path to the YAML configuration file"
    )
    parser.add_argument(
        "-p", "--port",
        help="Serial port, overrides modem.port from the config"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except BridgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.port:
        config.modem.port = args.port

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, config.log.level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        bridge = SmsMailBridge.from_config(config)
        bridge.run()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except BridgeError as e:
        logger.error(f"Bridge stopped: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
