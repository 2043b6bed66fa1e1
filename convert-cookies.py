#!/usr/bin/env python3
"""
Helper script to turn a cookie-editor export into a saved session
Usage: python convert-cookies.py cookies_raw.json sessions/auth_alice.json
"""

import json
import sys
from pathlib import Path

from autobook.sessions import convert_cookie_export


def main():
    if len(sys.argv) != 3:
        print("Usage: python convert-cookies.py <cookie_export.json> <auth_output.json>", file=sys.stderr)
        sys.exit(1)

    input_file = Path(sys.argv[1])
    output_file = Path(sys.argv[2])

    if not input_file.exists():
        print(f"Error: File '{input_file}' not found", file=sys.stderr)
        sys.exit(1)

    try:
        raw_cookies = json.loads(input_file.read_text(encoding="utf-8"))
    except ValueError as e:
        print(f"Error: Could not parse {input_file}: {e}", file=sys.stderr)
        sys.exit(1)

    if not isinstance(raw_cookies, list):
        print("Error: Expected a JSON array of cookies", file=sys.stderr)
        sys.exit(1)

    state = convert_cookie_export(raw_cookies)

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(json.dumps(state, indent=2), encoding="utf-8")

    # Print summary to stderr
    print(f"✓ Converted {len(state['cookies'])} cookies", file=sys.stderr)
    print(f"Output saved to: {output_file}", file=sys.stderr)


if __name__ == "__main__":
    main()
