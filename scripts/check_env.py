"""Pre-deploy check for the Strava Connect API environment file.

``check`` loads ``AppSettings`` from an ``.env`` file and prints a short,
secret-free summary of where the service will read its Strava credentials,
which record store it will use and whether the session cookie is marked
``Secure``. When ``APP_ENV=production`` it also fails if the session signing
secret or the token encryption secret is missing.

``record`` and ``verify`` run the same check and additionally pin the file's
SHA256 so drift between deploys is caught::

    python -m scripts.check_env record --env-file /srv/strava-connect/.env \
        --hash-file /srv/strava-connect/.env.sha256

    python -m scripts.check_env verify --env-file /srv/strava-connect/.env \
        --hash-file /srv/strava-connect/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path

from pydantic import ValidationError

from strava_connect.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class ProductionConfigError(Exception):
    """Settings load, but a production deployment would be unsafe."""


def _sha256(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _production_problems(settings: AppSettings) -> list[str]:
    problems: list[str] = []
    if not settings.session.secret:
        problems.append("SESSION_SECRET must be set when APP_ENV=production.")
    if not settings.security.token_encryption_secret:
        problems.append("TOKEN_ENCRYPTION_SECRET must be set when APP_ENV=production.")
    return problems


def load_settings(env_file: Path) -> AppSettings:
    """Load settings from ``env_file``; raises on invalid or unsafe values."""
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Check the path or create the file before running this tool."
        )
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    if settings.is_production:
        problems = _production_problems(settings)
        if problems:
            raise ProductionConfigError("\n".join(problems))
    return settings


def describe(settings: AppSettings) -> list[str]:
    strava = settings.strava
    credentials_source = (
        "environment"
        if strava.client_id and strava.client_secret and strava.redirect_uri
        else f"Secrets Manager ({settings.aws.secrets_id})"
    )
    if settings.storage.backend == "sqlite":
        store = f"sqlite ({settings.storage.record_store_path})"
    else:
        store = f"dynamodb ({settings.aws.dynamodb_table_name} in {settings.aws.region_name})"
    return [
        f"environment:        {settings.environment}",
        f"strava credentials: {credentials_source}",
        f"record store:       {store}",
        f"legacy token table: {settings.storage.legacy_tokens_path}",
        f"secure cookie:      {'yes' if settings.is_production else 'no'}",
    ]


def record_baseline(env_file: Path, hash_file: Path) -> int:
    checksum = _sha256(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum {checksum} to {hash_file}")
    return EXIT_OK


def verify_baseline(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No checksum baseline at {hash_file}; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _sha256(env_file)
    if expected != actual:
        print(
            f"{env_file} changed since the baseline was recorded.\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print("Environment checksum OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate Strava Connect settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text, needs_hash in (
        ("check", "Validate settings and print a summary.", False),
        ("record", "Validate settings and store the checksum baseline.", True),
        ("verify", "Validate settings and compare against the baseline.", True),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Environment file to check (default: ./.env).",
        )
        if needs_hash:
            subparser.add_argument(
                "--hash-file",
                required=True,
                type=Path,
                help="Location of the checksum baseline.",
            )

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    try:
        settings = load_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(f"Invalid settings in {env_file}:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except ProductionConfigError as exc:
        print(f"Production settings are incomplete:\n{exc}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error while loading settings: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    if args.command == "check":
        print("\n".join(describe(settings)))
        return EXIT_OK
    if args.command == "record":
        return record_baseline(env_file, args.hash_file)
    return verify_baseline(env_file, args.hash_file)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
