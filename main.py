"""Command line entry point for credwarden."""

import argparse
import getpass
import sys
from pathlib import Path

from dotenv import load_dotenv

from credwarden import __description__, __version__
from credwarden.auth import CredentialVerifier
from credwarden.config_loader import load_config
from credwarden.db import (
    SqlAccountStore,
    SqlConfigSource,
    SqlHistoryStore,
    create_engine,
    get_session,
    init_db,
)
from credwarden.exceptions import CredwardenError, PasswordPolicyError
from credwarden.logging_setup import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="credwarden", description=__description__)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to YAML config file")
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Host to bind to")
    serve.add_argument("--port", type=int, help="Port to listen on")
    serve.add_argument("--base-url", help="Base URL prefix for reverse proxies")
    serve.add_argument("--db", help="Path to SQLite database")
    serve.add_argument("--reload", action="store_true", help="Auto-reload for development")

    create = subparsers.add_parser("create-account", help="Create an account")
    create.add_argument("username")
    create.add_argument("--password", help="Initial password (prompted if omitted)")
    create.add_argument("--db", help="Path to SQLite database")
    create.add_argument(
        "--must-change", action="store_true",
        help="Require a password change at first login",
    )

    unlock = subparsers.add_parser("unlock", help="Clear an account lockout")
    unlock.add_argument("username")
    unlock.add_argument("--db", help="Path to SQLite database")

    policy = subparsers.add_parser("policy", help="Print the password requirements")
    policy.add_argument("--db", help="Path to SQLite database")

    return parser


def _verifier(session, config) -> CredentialVerifier:
    return CredentialVerifier(
        accounts=SqlAccountStore(session),
        history=SqlHistoryStore(session),
        config_source=SqlConfigSource(session, config.security),
    )


def _engine(db: "str | None", config):
    engine = create_engine(f"sqlite:///{Path(db or config.server.db_path)}")
    init_db(engine)
    return engine


def _prompt_password() -> str:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        raise CredwardenError("Passwords do not match")
    return password


def main(argv=None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args.config)
    except CredwardenError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    logger = setup_logging(level=config.logging.level, path=config.logging.path)

    if args.command == "serve":
        from credwarden import server

        server.run_server(
            host=args.host or config.server.host,
            port=args.port or config.server.port,
            base_url=args.base_url or config.server.base_url,
            db_path=Path(args.db or config.server.db_path),
            reload=args.reload,
            security=config.security,
            secure_cookies=config.server.secure_cookies,
            login_delay_max_seconds=config.server.login_delay_max_seconds,
            reauth_max_age_minutes=config.server.reauth_max_age_minutes,
        )
        return 0

    try:
        with get_session(_engine(args.db, config)) as session:
            verifier = _verifier(session, config)
            if args.command == "policy":
                # Runtime overrides stored in the database win over the file.
                policy = verifier.config_source.load_security_policy_config()
                for line in verifier.policy.requirements_text(policy):
                    print(f"- {line}")
            elif args.command == "create-account":
                password = args.password or _prompt_password()
                verifier.create_account(
                    args.username, password, must_change_password=args.must_change
                )
                print(f"Account {args.username} created")
            elif args.command == "unlock":
                verifier.unlock(args.username)
                print(f"Account {args.username} unlocked")
    except PasswordPolicyError as e:
        for violation in e.violations:
            print(f"- {violation.message}", file=sys.stderr)
        return 1
    except CredwardenError as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
