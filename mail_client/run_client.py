"""
Mail Client Runner

Entry point: parses the command line, runs the command and prints the
result. Client failures are reported on stderr with exit status 1.
"""

import logging
import sys

from mail_client.common.args import parse_args
from mail_client.common.config import LOG_FORMAT
from mail_client.common.errors import MailClientError
from mail_client.sexp_protocol.client import MailClient


def main(argv=None) -> int:
    config, command, verbose = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT
    )
    logging.debug(f"Config: {config}")
    logging.debug(f"Command: {command.kind.value} {[key.value for key in command.args]}")

    try:
        result = MailClient(config).execute(command)
    except MailClientError as e:
        logging.debug("Command failed", exc_info=True)
        print(f"ERR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1

    print(result.render())
    return 0


if __name__ == "__main__":
    sys.exit(main())
