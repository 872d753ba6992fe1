# Main Entry Point
#
# python -m tiered_vault               run the local API server
# python -m tiered_vault --inspect F   describe an export file (no decryption)

import argparse
import json
import sys
from pathlib import Path

from . import __version__
from .core import EventSeverity, EventType, get_audit_logger


def main():
    parser = argparse.ArgumentParser(
        description="Tiered Vault - privacy-tiered personal secrets vault",
    )

    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="API host (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="API port (default: 8000)"
    )

    parser.add_argument(
        "--inspect",
        metavar="EXPORT_FILE",
        type=Path,
        help="Print the encryption summary of an export file and exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Tiered Vault v{__version__}"
    )

    args = parser.parse_args()

    if args.inspect is not None:
        from .vault import inspect_export

        try:
            blob = args.inspect.read_text(encoding="utf-8")
        except OSError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(inspect_export(blob), indent=2))
        return

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="Tiered Vault starting",
        details={"version": __version__, "host": args.host, "port": args.port}
    )

    print(f"Starting Tiered Vault API on {args.host}:{args.port} (Ctrl+C to stop)")

    from .api.main import start_api_server

    try:
        start_api_server(host=args.host, port=args.port)
    except KeyboardInterrupt:
        print("\nShutting down...")
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="Tiered Vault stopped (user interrupt)"
        )
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.CRITICAL,
            message=f"Tiered Vault crashed: {e}"
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
