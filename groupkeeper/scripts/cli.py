"""
A simple CLI for running and administering the server.
"""

import json
import os
import sys

import uvicorn


def run_server(**kwargs):
    for k, v in kwargs.items():
        os.environ[k] = v

    uvicorn.run("groupkeeper.api.app:app", host="0.0.0.0")


def main():
    try:
        command = sys.argv[1]
    except IndexError:
        command = None

    run = command == "run"
    setup = command == "setup"
    token = command == "token"

    if not (run or setup or token):
        print(
            "Only supported commands are groupkeeper run dev, groupkeeper run prod, "
            "groupkeeper setup, or groupkeeper token {account_id}"
        )
        exit(1)

    if run:
        try:
            dev = sys.argv[2] == "dev"
            prod = sys.argv[2] == "prod"
        except IndexError:
            print("Specify either groupkeeper run dev or groupkeeper run prod")
            exit(1)

    if run and dev:
        from groupkeeper.core.cryptography import generate_key_pair
        from groupkeeper.core.uuid import uuid7
        from groupkeeper.service.tokens import TokenService

        key_password = "development"
        _, private = generate_key_pair(key_pair_type="Ed25519", key_password=key_password)
        accounts = [uuid7(), uuid7()]

        tokens = TokenService(private_key=private, key_password=key_password)
        for account_id in accounts:
            print(f"Account {account_id}: Bearer {tokens.issue_token(account_id)}")

        run_server(
            GROUPKEEPER_STORAGE_BACKEND="memory",
            GROUPKEEPER_KEY_PASSWORD=key_password,
            GROUPKEEPER_PRIVATE_KEY=private.decode("utf-8"),
            GROUPKEEPER_MEMORY_ACCOUNTS=json.dumps([str(a) for a in accounts]),
            GROUPKEEPER_LOG_LEVEL="DEBUG",
        )

    if run and prod:
        from groupkeeper.api.setup import initial_setup
        from groupkeeper.config.settings import Settings

        initial_setup(settings=Settings())
        run_server()

    if setup:
        from groupkeeper.api.setup import initial_setup
        from groupkeeper.config.settings import Settings

        initial_setup(settings=Settings())

        print("Setup complete, please restart the container or application")
        exit(0)

    if token:
        from groupkeeper.config.settings import Settings
        from groupkeeper.core.uuid import UUID
        from groupkeeper.service.tokens import TokenService

        try:
            account_id = UUID(sys.argv[2])
        except (IndexError, ValueError):
            print("Usage: groupkeeper token {account_id}")
            exit(1)

        tokens = TokenService.from_settings(Settings())
        print(tokens.issue_token(account_id))
