"""
Entry point for RideChat application.
This module provides a command-line interface to open a conversation or
print its stored history.
"""

import argparse
import os
import sys

from RideChat.config import config
from RideChat.core.logging import auto_configure
from RideChat.start import client


def parse(argv=None):
    parser = argparse.ArgumentParser(prog='RideChat', description='RideChat client')
    parser.add_argument('--env', default=os.environ.get('RIDECHAT_ENV', 'production'),
                        choices=['development', 'dev', 'production', 'prod', 'testing', 'test'],
                        help='Logging preset (default: production, file logs only)')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    chat_parser = subparsers.add_parser('chat', help='Open a conversation')
    chat_parser.add_argument('conversation', nargs='?', help='Ride/session id of the conversation')
    chat_parser.add_argument('--me', dest='self_key', help='Your user key (used in message ids)')
    chat_parser.add_argument('--server', default=config.DEFAULT_SERVER_ADDRESS,
                             help=f'WebSocket server address (default: {config.DEFAULT_SERVER_ADDRESS})')
    chat_parser.add_argument('--peer', default=config.PEER_LABEL,
                             help=f'Display name of the other participant (default: {config.PEER_LABEL})')
    chat_parser.add_argument('--storage', default=config.STORAGE_DIR,
                             help='Directory for stored conversations')

    history_parser = subparsers.add_parser('history', help='Print a stored conversation')
    history_parser.add_argument('conversation', help='Ride/session id of the conversation')
    history_parser.add_argument('--peer', default=config.PEER_LABEL, help='Display name of the peer')
    history_parser.add_argument('--storage', default=config.STORAGE_DIR,
                                help='Directory for stored conversations')

    return parser.parse_args(argv)


def main(argv=None):
    args = parse(argv)
    auto_configure(args.env)

    if args.command == 'chat':
        return client.client(args.conversation, args.self_key, server=args.server,
                             peer_name=args.peer, storage_dir=args.storage)
    elif args.command == 'history':
        return client.history(args.conversation, storage_dir=args.storage, peer_name=args.peer)
    else:
        raise Exception('Unknown command')


if __name__ == '__main__':
    sys.exit(main())
