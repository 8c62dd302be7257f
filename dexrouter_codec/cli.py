#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import logging
import os
import sys
from typing import List, Optional

from colorama import Fore, Style, init

from .codec import decode_json, encode_json
from .errors import CodecError
from .validator import check_decode_encode

USAGE = """Usage:
  dexrouter-codec decode <calldata>
  dexrouter-codec encode <json-file | ->
  dexrouter-codec validate <calldata>"""

LOG_LEVEL_ENV = "DEXROUTER_CODEC_LOG_LEVEL"

EXIT_USAGE = 1
EXIT_CODEC_ERROR = 2
EXIT_MISMATCH = 3


def setup_logging() -> None:
    level = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper() or "WARNING"
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def read_payload(arg: str) -> str:
    if arg == "-":
        return sys.stdin.read()
    with open(arg, "r", encoding="utf-8") as f:
        return f.read()


def cmd_decode(calldata: str) -> int:
    print(json.dumps(decode_json(calldata), indent=2))
    return 0


def cmd_encode(source: str) -> int:
    print(json.dumps({"calldata": encode_json(read_payload(source))}, indent=2))
    return 0


def cmd_validate(calldata: str) -> int:
    report = check_decode_encode(calldata)
    if not report.parsed:
        print(f"Error: {report.error}", file=sys.stderr)
        return EXIT_CODEC_ERROR
    print(json.dumps(report.to_dict(), indent=2))
    if report.matches:
        print(f"{Fore.GREEN}✅ {report.summary}{Style.RESET_ALL}", file=sys.stderr)
        return 0
    print(f"{Fore.RED}❌ {report.summary}{Style.RESET_ALL}", file=sys.stderr)
    return EXIT_MISMATCH


COMMANDS = {
    "decode": cmd_decode,
    "encode": cmd_encode,
    "validate": cmd_validate,
}


def main(argv: Optional[List[str]] = None) -> None:
    init(autoreset=True)
    setup_logging()
    args = sys.argv[1:] if argv is None else argv

    if len(args) != 2 or args[0] not in COMMANDS:
        print(USAGE, file=sys.stderr)
        sys.exit(EXIT_USAGE)

    command, value = args[0], args[1].strip()
    try:
        code = COMMANDS[command](value)
    except CodecError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_CODEC_ERROR)
    except OSError as e:
        print(f"Error: cannot read {value}: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    sys.exit(code)


if __name__ == "__main__":
    main()
