"""Runs the JSON sample connector with json.properties."""

import sys

from ..main import run_connector
from .json_pipeline import JsonPipeline

CONFIG_FILE = "json.properties"


def main() -> int:
    return run_connector(CONFIG_FILE, JsonPipeline())


if __name__ == "__main__":
    sys.exit(main())
