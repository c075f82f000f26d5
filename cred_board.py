"""Command line interface for the credential-gated governance ledger."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

from credboard.authority import AuthorityService, create_author_bytes, create_user_hash
from credboard.constants import DEFAULT_LIVELINESS
from credboard.errors import CredentialError
from credboard.ledger import GovernanceLedger, LedgerParams
from credboard.settings import Settings, load_settings
from credboard.signer import StaticSecretKeyProvider
from credboard.store import LedgerStore
from credboard.verifier import Credential


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--store",
        help="Location of the JSON ledger (default: $CREDBOARD_STORE or ledger.json)",
    )
    parser.add_argument(
        "--key",
        help="Hex-encoded 32-byte secret key of the local party (default: $CREDBOARD_AUTHORITY_KEY)",
    )
    parser.add_argument("--log-level", help="Logging level (default: $CREDBOARD_LOG_LEVEL or WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create a new ledger with a single proposal")
    init_parser.add_argument("--description", help="Proposal description")
    init_parser.add_argument("--min-liveliness", type=int, help="Liveliness a credential must exceed")
    init_parser.add_argument("--proposer", help="Hex-encoded 32-byte proposer identity")
    init_parser.add_argument("--deadline", type=int, help="Proposal deadline timestamp")

    subparsers.add_parser("authority", help="Print the authority public key")

    issue_parser = subparsers.add_parser("issue", help="Issue a credential for an identity")
    issue_parser.add_argument("identity", nargs="?", help="Identity string, zero-padded to 32 bytes")
    issue_parser.add_argument("--user-hash", help="Hex-encoded 32-byte user hash instead of an identity")
    issue_parser.add_argument(
        "--liveliness",
        type=int,
        default=DEFAULT_LIVELINESS,
        help=f"Liveliness score to embed (default: {DEFAULT_LIVELINESS})",
    )
    issue_parser.add_argument("--output", help="Optional file path to store the credential JSON")

    for name, help_text in (("vote-for", "Vote for the proposal"), ("vote-against", "Vote against the proposal")):
        vote_parser = subparsers.add_parser(name, help=help_text)
        vote_parser.add_argument("credential", help="Path to the credential JSON")

    comment_parser = subparsers.add_parser("comment", help="Comment on the proposal")
    comment_parser.add_argument("credential", help="Path to the credential JSON")
    comment_parser.add_argument("text", help="Comment text")

    post_parser = subparsers.add_parser("post", help="Post a message to the bulletin board")
    post_parser.add_argument("credential", help="Path to the credential JSON")
    post_parser.add_argument("message", help="Message text")
    post_parser.add_argument("--author", required=True, help="Author name, zero-padded to 132 bytes")
    post_parser.add_argument("--timestamp", type=int, help="Post timestamp (default: now)")

    subparsers.add_parser("execute", help="Close the proposal (authority only)")
    subparsers.add_parser("show", help="Print the ledger state")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def resolve_settings(namespace: argparse.Namespace) -> Settings:
    settings = load_settings()
    if namespace.store:
        settings = replace(settings, store_path=namespace.store)
    if namespace.key:
        settings = replace(settings, authority_key=bytes.fromhex(namespace.key))
    if namespace.log_level:
        settings = replace(settings, log_level=namespace.log_level.upper())
    return settings


def load_credential(path: str) -> Credential:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    try:
        if "credential" in payload:
            payload = payload["credential"]
        return Credential.from_dict(payload)
    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Malformed credential file {path}") from exc


def _init(namespace: argparse.Namespace, settings: Settings, store: LedgerStore) -> dict:
    params = LedgerParams(
        min_liveliness=(
            namespace.min_liveliness if namespace.min_liveliness is not None else settings.min_liveliness
        ),
        proposer=bytes.fromhex(namespace.proposer) if namespace.proposer else settings.proposer,
        description=namespace.description if namespace.description is not None else settings.description,
        deadline=namespace.deadline if namespace.deadline is not None else settings.deadline,
    )
    ledger = store.initialize(params, StaticSecretKeyProvider(settings.authority_key))
    return {"store": store.path, "authority_pk": ledger.authority_pk.to_dict(), "params": params.to_dict()}


def _show(ledger: GovernanceLedger) -> dict:
    return {
        "authority_pk": ledger.authority_pk.to_dict(),
        "proposal": ledger.proposal.to_dict(),
        "sequence": ledger.sequence,
        "stats": ledger.voting_stats(),
        "post_count": ledger.post_count,
        "author_count": ledger.author_count,
        "comments": [comment.to_dict() for comment in ledger.comments()],
        "posts": [post.to_dict() for post in ledger.posts()],
    }


def run(namespace: argparse.Namespace, settings: Settings) -> dict:
    store = LedgerStore(settings.store_path)

    if namespace.command == "init":
        return _init(namespace, settings, store)

    if namespace.command == "authority":
        return {"authority_pk": AuthorityService(settings.authority_key).public_key().to_dict()}

    if namespace.command == "issue":
        if namespace.user_hash:
            user_hash = bytes.fromhex(namespace.user_hash)
        elif namespace.identity:
            user_hash = create_user_hash(namespace.identity)
        else:
            raise ValueError("An identity or --user-hash is required")
        ledger = store.load(StaticSecretKeyProvider(settings.authority_key))
        signature = ledger.issue_credential(user_hash)
        credential = Credential(user_hash=user_hash, liveliness=namespace.liveliness, authority_signature=signature)
        payload = credential.to_dict()
        if namespace.output:
            Path(namespace.output).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return payload

    ledger = store.load(StaticSecretKeyProvider(settings.authority_key))

    if namespace.command == "show":
        return _show(ledger)

    if namespace.command in ("vote-for", "vote-against"):
        credential = load_credential(namespace.credential)
        if namespace.command == "vote-for":
            result = ledger.vote_for(credential)
        else:
            result = ledger.vote_against(credential)
    elif namespace.command == "comment":
        credential = load_credential(namespace.credential)
        result = ledger.comment_on_proposal(namespace.text, credential, int(time.time()))
    elif namespace.command == "post":
        credential = load_credential(namespace.credential)
        timestamp = namespace.timestamp if namespace.timestamp is not None else int(time.time())
        result = ledger.post(namespace.message, timestamp, create_author_bytes(namespace.author), credential)
    elif namespace.command == "execute":
        outcome = ledger.execute_proposal()
        store.save(ledger)
        return {"executed": outcome.name, "proposal": ledger.proposal.to_dict()}
    else:
        raise RuntimeError("Unreachable")

    store.save(ledger)
    return result.to_dict()


def main(argv: list[str] | None = None) -> int:
    namespace = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        settings = resolve_settings(namespace)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if namespace.command == "serve":
        import uvicorn

        from credboard.server import create_app

        uvicorn.run(create_app(settings), host=namespace.host, port=namespace.port)
        return 0

    try:
        payload = run(namespace, settings)
    except CredentialError as exc:
        print(json.dumps({"error": exc.to_dict()}, indent=2), file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
