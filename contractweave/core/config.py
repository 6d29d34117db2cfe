"""
Reserved names, naming conventions and runtime settings
"""

import datetime
import decimal
import enum
import fractions
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from dotenv import find_dotenv, load_dotenv

# Names with a fixed meaning inside conditions
RESULT_NAME = "result"
OLD_NAME = "old"
LOOKUP_NAME = "__old__"
SELF_NAME = "self"

# Naming transform between internal implementations and public wrappers
PRIVACY_MARKER = "_"
INITIALIZER_NAME = "_init"
PUBLIC_INITIALIZER_NAME = "__init__"

# Emission
GENERATED_SUFFIX = "_contracts"
MIXIN_SUFFIX = "Contracts"
DEFAULT_OUTPUT_DIR = "./contracts_out"

# Values captured by reference: nothing reachable from them can change
IMMUTABLE_TYPES = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    tuple,
    range,
    frozenset,
    enum.Enum,
    decimal.Decimal,
    fractions.Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    PurePath,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    """Environment-driven settings for the command line tool"""
    output_dir: str = DEFAULT_OUTPUT_DIR
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """
        Build settings from the process environment.

        A ``.env`` file is loaded first (without overriding variables that
        are already set), then ``CONTRACTWEAVE_OUTPUT_DIR`` and
        ``CONTRACTWEAVE_LOG_LEVEL`` are read.
        """
        load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)
        return cls(
            output_dir=os.getenv("CONTRACTWEAVE_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
            log_level=os.getenv("CONTRACTWEAVE_LOG_LEVEL", "WARNING").upper(),
        )

    def configure_logging(self) -> None:
        level = getattr(logging, self.log_level, logging.WARNING)
        logging.basicConfig(level=level, format=LOG_FORMAT)
