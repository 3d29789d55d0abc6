"""Proofy CLI — command-line interface for registering and anchoring works.

Usage:
    proofy hash-file --path track.wav
    proofy submit --owner alice --title "Night Drive" --type music \\
        --file track.wav --rights rights.json --confirm
    proofy show --id AbC123xyz789
    proofy list --owner alice
    proofy invite --id AbC123xyz789 --owner alice --email bob@example.com \\
        --role composer --percentage 30
    proofy sign --token <token> --email bob@example.com --accept
    proofy signatures --id AbC123xyz789 --owner alice
    proofy finalize --id AbC123xyz789 --owner alice
    proofy status

Settings come from the environment or a .env file (see proofy.config).
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from proofy.config import Settings
from proofy.crypto.hashing import sha256_file
from proofy.models.creation import ProjectType
from proofy.service import ProofyService, ServiceResult


def _make_service(args: argparse.Namespace) -> ProofyService:
    """Create a ProofyService with durable persistence."""
    settings = Settings.from_env(args.env_file)
    if args.data_dir is not None:
        settings = dataclasses.replace(settings, data_dir=args.data_dir)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return ProofyService.from_settings(settings)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _report(result: ServiceResult) -> int:
    if result.success:
        _print_json(result.data)
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_hash_file(args: argparse.Namespace) -> int:
    path: Path = args.path
    if not path.is_file():
        print(f"Failed: file not found: {path}", file=sys.stderr)
        return 1
    print(sha256_file(path))
    return 0


def cmd_submit(args: argparse.Namespace) -> int:
    if args.file is None and args.hash is None:
        print("Failed: one of --file or --hash is required", file=sys.stderr)
        return 1
    if args.file is not None and not args.file.is_file():
        print(f"Failed: file not found: {args.file}", file=sys.stderr)
        return 1
    file_hash = args.hash if args.hash is not None else sha256_file(args.file)

    rights: Optional[dict[str, Any]] = None
    if args.rights is not None:
        try:
            rights = json.loads(args.rights.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            print(f"Failed: cannot read rights file: {e}", file=sys.stderr)
            return 1

    service = _make_service(args)
    result = service.submit_creation(
        owner_id=args.owner,
        title=args.title,
        project_type=args.project_type,
        file_hash=file_hash,
        description=args.description,
        rights=rights,
        rights_confirmed=args.confirm,
    )
    if result.success:
        print(f"Created: {result.data['public_id']} (status: {result.data['status']})")
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_show(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.public_view(args.id))


def cmd_list(args: argparse.Namespace) -> int:
    service = _make_service(args)
    _print_json([
        {
            "public_id": c.public_id,
            "title": c.title,
            "project_type": c.project_type.value,
            "status": c.status.value,
            "created_utc": c.created_utc.isoformat(),
            "tx_hash": c.tx_hash,
        }
        for c in service.list_creations(args.owner)
    ])
    return 0


def cmd_invite(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.invite_cosigner(
        args.id, args.owner, args.email, args.role, args.percentage,
    ))


def cmd_sign(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.respond_to_invitation(
        args.token, args.email, accept=args.accept, rejection_reason=args.reason,
    ))


def cmd_signatures(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.signature_status(args.id, args.owner))


def cmd_finalize(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.finalize(args.id, args.owner))


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    _print_json(service.status())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proofy",
        description="Proofy — proof-of-authorship registry CLI",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Data directory (default: PROOFY_DATA_DIR or data/)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file (default: search upwards for .env)",
    )
    sub = parser.add_subparsers(dest="command")

    # hash-file
    p_hash = sub.add_parser("hash-file", help="Print the SHA-256 of a file")
    p_hash.add_argument("--path", type=Path, required=True, help="File to hash")

    # submit
    p_submit = sub.add_parser("submit", help="Register a new creation")
    p_submit.add_argument("--owner", required=True, help="Owner ID")
    p_submit.add_argument("--title", required=True, help="Work title")
    p_submit.add_argument(
        "--type", dest="project_type", required=True,
        choices=[t.value for t in ProjectType],
        help="Project type",
    )
    source = p_submit.add_mutually_exclusive_group()
    source.add_argument("--file", type=Path, help="File to hash and register")
    source.add_argument("--hash", help="Precomputed SHA-256 hex digest")
    p_submit.add_argument("--description", default="", help="Work description")
    p_submit.add_argument("--rights", type=Path, help="JSON file with the rights payload")
    p_submit.add_argument(
        "--confirm", action="store_true",
        help="Confirm the rights split (required for music)",
    )

    # show
    p_show = sub.add_parser("show", help="Show the public view of a creation")
    p_show.add_argument("--id", required=True, help="Public ID")

    # list
    p_list = sub.add_parser("list", help="List an owner's creations")
    p_list.add_argument("--owner", required=True, help="Owner ID")

    # invite
    p_inv = sub.add_parser("invite", help="Invite a co-signer")
    p_inv.add_argument("--id", required=True, help="Public ID")
    p_inv.add_argument("--owner", required=True, help="Owner ID")
    p_inv.add_argument("--email", required=True, help="Invitee email")
    p_inv.add_argument("--role", required=True, help="Role label (e.g. composer)")
    p_inv.add_argument("--percentage", type=int, required=True, help="Invitee share (0-100)")

    # sign
    p_sign = sub.add_parser("sign", help="Accept or reject an invitation")
    p_sign.add_argument("--token", required=True, help="Invitation token")
    p_sign.add_argument("--email", required=True, help="Signer email")
    decision = p_sign.add_mutually_exclusive_group(required=True)
    decision.add_argument("--accept", action="store_true", help="Accept the split")
    decision.add_argument("--reject", action="store_true", help="Reject the split")
    p_sign.add_argument("--reason", help="Rejection reason")

    # signatures
    p_sigs = sub.add_parser("signatures", help="Show co-signature progress")
    p_sigs.add_argument("--id", required=True, help="Public ID")
    p_sigs.add_argument("--owner", required=True, help="Owner ID")

    # finalize
    p_fin = sub.add_parser("finalize", help="Anchor a creation")
    p_fin.add_argument("--id", required=True, help="Public ID")
    p_fin.add_argument("--owner", required=True, help="Owner ID")

    # status
    sub.add_parser("status", help="Show registry status")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "hash-file": cmd_hash_file,
        "submit": cmd_submit,
        "show": cmd_show,
        "list": cmd_list,
        "invite": cmd_invite,
        "sign": cmd_sign,
        "signatures": cmd_signatures,
        "finalize": cmd_finalize,
        "status": cmd_status,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
