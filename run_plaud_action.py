#!/usr/bin/env python3
"""
Run a Plaud action from the command line.

Uses PLAUD_BEARER_TOKEN and PLAUD_REGION from your .env file. Output items are
printed as JSON; downloaded files are written to the current directory.

Usage:
    python run_plaud_action.py device list
    python run_plaud_action.py recording getMany --limit 5
    python run_plaud_action.py recording getMany --return-all --include-trash
    python run_plaud_action.py recording getDownloadUrl --recording-id <id> --format opus
    python run_plaud_action.py recording updateFilename --recording-id <id> --new-filename "Standup"
    python run_plaud_action.py recording download --recording-id <id>
"""

import argparse
import json
import os

from dotenv import load_dotenv

load_dotenv()

from plaud_actions import execute
from plaud_api import PlaudApi
from plaud_connection import PlaudConnection

PLAUD_BEARER_TOKEN = os.getenv("PLAUD_BEARER_TOKEN")
PLAUD_REGION = os.getenv("PLAUD_REGION", PlaudConnection.DEFAULT_REGION)


def build_params(args):
    """Turn parsed arguments into the parameter dict of one input item."""
    if args.resource == "recording" and args.operation == "getMany":
        return {
            "return_all": args.return_all,
            "limit": args.limit,
            "options": {
                "include_trash": args.include_trash,
                "sort_by": args.sort_by,
                "descending": not args.ascending,
            },
        }

    params = {}
    for name in ("recording_id", "format", "new_filename", "binary_property_name"):
        value = getattr(args, name)
        if value is not None:
            params[name] = value
    return params


def main():
    parser = argparse.ArgumentParser(description="Run a Plaud API action")
    parser.add_argument("resource", choices=["device", "recording"])
    parser.add_argument("operation")
    parser.add_argument("--recording-id")
    parser.add_argument("--format", choices=["original", "opus"])
    parser.add_argument("--new-filename")
    parser.add_argument("--binary-property-name")
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--return-all", action="store_true")
    parser.add_argument("--include-trash", action="store_true")
    parser.add_argument("--sort-by", default="created_at", choices=["created_at", "updated_at", "filename"])
    parser.add_argument("--ascending", action="store_true")
    args = parser.parse_args()

    if not PLAUD_BEARER_TOKEN:
        print("ERROR: Missing PLAUD_BEARER_TOKEN in .env file")
        exit(1)

    plaud_api = PlaudApi(PlaudConnection(PLAUD_BEARER_TOKEN, PLAUD_REGION))
    items = execute(plaud_api, args.resource, args.operation, [build_params(args)])

    for item in items:
        print(json.dumps(item.json, indent=2, ensure_ascii=False))
        for binary in item.binary.values():
            with open(binary.file_name, "wb") as f:
                f.write(binary.data)
            print(f"Saved {binary.file_name} ({binary.file_size} bytes, {binary.mime_type})")


if __name__ == "__main__":
    main()
