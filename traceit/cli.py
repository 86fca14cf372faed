import argparse
import asyncio
import json

from traceit.core.db import check_connection, open_backend
from traceit.core.errors import TraceItError
from traceit.core.repository import FolderRepository, QRCodeRepository

COMMANDS = [
    "init", "status", "create", "bulk", "list", "show", "update", "move",
    "scan", "folders", "mkfolder", "rmfolder",
]


def build_parser():
    parser = argparse.ArgumentParser(description="Trace-it QR code store")
    parser.add_argument("cmd", choices=COMMANDS)
    parser.add_argument("--id", help="QR code ID for show/update/move/scan")
    parser.add_argument("--title")
    parser.add_argument("--type", default="link", choices=["link", "landing", "verified_content"])
    parser.add_argument("--url", help="Destination URL (repeat for verified content sources)", action="append")
    parser.add_argument("--folder", help="Folder name")
    parser.add_argument("--domain", help="Custom domain")
    parser.add_argument("--organization")
    parser.add_argument("--category", help="Content category")
    parser.add_argument("--count", type=int, help="Number of codes for bulk")
    return parser


def _destination(urls):
    if not urls:
        return None
    return urls[0] if len(urls) == 1 else urls


async def run(args):
    backend = await open_backend()
    qr = QRCodeRepository(backend)
    folders = FolderRepository(backend)

    try:
        # -------------------------
        # SCHEMA / DIAGNOSTICS
        # -------------------------
        if args.cmd == "init":
            print("Schema ready.")
            return

        if args.cmd == "status":
            print(json.dumps(backend.describe(), indent=2))
            print("reachable" if await check_connection(backend) else "UNREACHABLE")
            return

        # -------------------------
        # QR CODES
        # -------------------------
        if args.cmd == "create":
            fields = {
                "type": args.type,
                "title": args.title,
                "destination_url": _destination(args.url),
                "folder": args.folder,
                "custom_domain": args.domain,
                "organization": args.organization,
                "content_category": args.category,
            }
            qr_id = await qr.create(fields)
            record = await qr.get(qr_id)
            print(f"QR code created with ID: {qr_id}")
            if record.verification_hash:
                print(f"Verification hash: {record.verification_hash}")
            return

        if args.cmd == "bulk":
            ids = await qr.bulk_create(args.count or 0, args.folder or "")
            print(f"Created {len(ids)} QR codes in '{args.folder}'")
            return

        if args.cmd == "list":
            print("\nQR codes (newest first):\n")
            for r in await qr.list_all():
                print(f"[{r.id}] {r.title}  ({r.type}, {r.folder}, {r.scans} scans)")
            print()
            return

        if args.cmd == "show":
            record = await qr.get(args.id)
            if not record:
                print("Not found.")
                return
            print(json.dumps(record.model_dump(), indent=2))
            return

        if args.cmd == "update":
            partial = {}
            if args.title:
                partial["title"] = args.title
            if args.url:
                partial["destination_url"] = _destination(args.url)
            if args.domain:
                partial["custom_domain"] = args.domain
            found = await qr.update(args.id, partial)
            print("Updated." if found else "Not found.")
            return

        if args.cmd == "move":
            found = await qr.move_to_folder(args.id, args.folder or "")
            print(f"Moved to '{args.folder}'." if found else "Not found.")
            return

        if args.cmd == "scan":
            await qr.increment_scan_count(args.id)
            print("Scan recorded.")
            return

        # -------------------------
        # FOLDERS
        # -------------------------
        if args.cmd == "folders":
            for f in await folders.list():
                print(f"[{f.id}] {f.name}  (created {f.created_at})")
            return

        if args.cmd == "mkfolder":
            await folders.create(args.folder or "")
            print(f"Folder '{args.folder}' created.")
            return

        if args.cmd == "rmfolder":
            removed = await folders.delete(args.folder or "")
            print(f"Folder '{args.folder}' deleted." if removed else "Not found.")
            return
    finally:
        await backend.close()


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(run(args))
    except TraceItError as e:
        raise SystemExit(f"Error: {e}")


if __name__ == "__main__":
    main()
