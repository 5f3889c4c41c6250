"""CLI constants."""

GREEN = "\033[32m"
RESET = "\033[0m"

CONFIG_DIR_NAME = ".resumable"
CONFIG_FILE_NAME = "config.json"

UPLOAD_ENDPOINT = "/upload"
