"""
Command-line interface for Pacifica Python SDK
Key generation, address derivation and offline request signing
"""

import argparse
import json
import sys
from typing import Optional

from .version import __version__
from .crypto.keys import encode_private_key, generate_key_material, resolve_key_material
from .exceptions import PacificaError
from .signing.signer import sign_request
from .signing.utils import DEFAULT_EXPIRY_WINDOW


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='pacifica-keys',
        description='Pacifica SDK key management and offline signing'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Pacifica Python SDK {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    setup_generate_parser(subparsers)
    setup_address_parser(subparsers)
    setup_sign_parser(subparsers)

    return parser


def setup_generate_parser(subparsers):
    generate_parser = subparsers.add_parser('generate', help='Generate a new Ed25519 account key')
    generate_parser.add_argument(
        '--format',
        choices=['base58', 'hex', 'base64'],
        default='base58',
        help='Output format for the private key (default: base58 keypair)'
    )


def setup_address_parser(subparsers):
    address_parser = subparsers.add_parser('address', help='Derive the account address of a private key')
    address_parser.add_argument('key', help='Private key (hex, base58 or base64)')


def setup_sign_parser(subparsers):
    sign_parser = subparsers.add_parser('sign', help='Sign an operation and print the envelope')
    sign_parser.add_argument('operation', help='Operation type, e.g. create_order')
    sign_parser.add_argument('payload', help='Operation payload as a JSON object')
    sign_parser.add_argument('--key', required=True, help='Private key (hex, base58 or base64)')
    sign_parser.add_argument('--account', help='Account address when signing with an agent key')
    sign_parser.add_argument(
        '--expiry-window',
        type=int,
        default=DEFAULT_EXPIRY_WINDOW,
        help=f'Expiry window in milliseconds (default: {DEFAULT_EXPIRY_WINDOW})'
    )


def handle_generate_command(args) -> int:
    key_material = generate_key_material()
    print(f"Private key ({args.format}): {encode_private_key(key_material, args.format)}")
    print(f"Address: {key_material.address}")
    return 0


def handle_address_command(args) -> int:
    key_material = resolve_key_material(args.key)
    print(f"Address: {key_material.public_identity.base58}")
    print(f"Public key (hex): {key_material.public_identity.hex}")
    return 0


def handle_sign_command(args) -> int:
    try:
        payload = json.loads(args.payload)
    except json.JSONDecodeError as e:
        print(f"Error: payload is not valid JSON: {e}", file=sys.stderr)
        return 1

    envelope = sign_request(
        args.operation,
        payload,
        args.key,
        account=args.account,
        expiry_window=args.expiry_window,
    )
    print(json.dumps(envelope.to_dict(), indent=2))
    return 0


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI

    Args:
        argv: Command line arguments (None to use sys.argv)

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == 'generate':
            return handle_generate_command(args)
        elif args.command == 'address':
            return handle_address_command(args)
        elif args.command == 'sign':
            return handle_sign_command(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except PacificaError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
