"""
Login token persistence.

The token returned by a successful login is kept in a small text file so
later invocations (list, send, fetch, logout) can authenticate.
"""

import logging
import os
from typing import Optional

from .errors import TokenStoreError


class TokenStore:
    """File backed store holding a single login token"""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[str]:
        """
        Read the stored token.

        Returns:
            The last line of the token file, or None if there is no token.
            Tokens written with surrounding double quotes are unquoted.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as token_file:
                lines = token_file.read().splitlines()
        except FileNotFoundError:
            logging.debug(f"No token file at {self.path}")
            return None
        except OSError as e:
            logging.error(f"Failed to read token file {self.path}: {e}")
            return None

        if not lines or not lines[-1]:
            return None
        token = lines[-1]
        if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
            token = token[1:-1]
        return token

    def save(self, token: str):
        """
        Overwrite the token file with ``token``.

        Raises:
            TokenStoreError: If the file cannot be written
        """
        try:
            with open(self.path, "w", encoding="utf-8") as token_file:
                token_file.write(token)
        except OSError as e:
            raise TokenStoreError("Login token could not be saved") from e
        logging.debug(f"Saved login token to {self.path}")

    def delete(self):
        """Remove the token file; a missing file is not an error"""
        try:
            os.remove(self.path)
            logging.debug(f"Deleted login token {self.path}")
        except FileNotFoundError:
            logging.debug(f"No login token to delete at {self.path}")
        except OSError as e:
            logging.warning(f"Could not delete login token {self.path}: {e}")
