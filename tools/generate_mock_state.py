"""Generate a realistic monitoring state dump for trying out the backup view.

Usage:
    python -m tools.generate_mock_state <output.json> [--seed N] [--guests N]

Examples:
    python -m tools.generate_mock_state mock_state.json
    python -m tools.generate_mock_state big.json --seed 7 --guests 80

The dump contains guests, snapshots, storage backups (some of them listings
of backup-server archives, to exercise deduplication), backup-server
archives including VMID 0 host configs, mail-gateway backups and datastore
deduplication factors.
"""

from __future__ import annotations

import argparse
import json
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

NODES = ["pve1", "pve2", "pve3"]
INSTANCE = "homelab"
BACKUP_SERVERS = ["pbs-main", "pbs-secondary"]
DATASTORES = ["backup-store", "offsite-backup"]
OWNERS = ["admin@pbs", "backup@pbs", "root@pam", "automation@pbs"]
VM_NAMES = ["web", "db", "mail", "proxy", "ci", "monitor", "vault", "git"]
CT_NAMES = ["dns", "cache", "nginx", "redis", "mqtt", "grafana"]
GIB = 1024 ** 3


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_guests(rng: random.Random, count: int) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Split *count* guests between VMs (100+) and containers (200+)."""
    vms: list[dict[str, Any]] = []
    containers: list[dict[str, Any]] = []
    for _ in range(count):
        node = rng.choice(NODES)
        if rng.random() < 0.55:
            vmid = 100 + len(vms)
            name = f"{rng.choice(VM_NAMES)}-{len(vms) + 1:02d}"
            vms.append({"vmid": vmid, "name": name, "node": node, "instance": INSTANCE, "type": "qemu"})
        else:
            vmid = 200 + len(containers)
            name = f"{rng.choice(CT_NAMES)}-{len(containers) + 1:02d}"
            containers.append({"vmid": vmid, "name": name, "node": node, "instance": INSTANCE, "type": "lxc"})
    return vms, containers


def make_snapshots(rng: random.Random, guests: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    snapshots = []
    for guest in guests:
        if rng.random() > 0.4:
            continue
        for i in range(rng.randint(1, 3)):
            taken = now - timedelta(hours=rng.randint(1, 24 * 20))
            snapshots.append({
                "vmid": guest["vmid"],
                "instance": INSTANCE,
                "node": guest["node"],
                "type": guest["type"],
                "time": _iso(taken),
                "name": f"pre-upgrade-{i + 1}",
                "description": rng.choice(["", "before kernel update", "manual checkpoint"]),
                "sizeBytes": rng.randint(1, 8) * GIB // 4,
            })
    return snapshots


def make_remote_backups(rng: random.Random, guests: list[dict[str, Any]], now: datetime) -> list[dict[str, Any]]:
    backups = []
    for guest in guests:
        if rng.random() > 0.6:
            continue
        kind = "vm" if guest["type"] == "qemu" else "ct"
        for _ in range(rng.randint(2, 4)):
            taken = now - timedelta(hours=rng.randint(1, 24 * 60))
            backups.append({
                "vmid": str(guest["vmid"]),
                "backupType": kind,
                "instance": rng.choice(BACKUP_SERVERS),
                "datastore": rng.choice(DATASTORES),
                "namespace": rng.choice(["root", "root", "prod"]),
                "backupTime": _iso(taken),
                "size": rng.randint(2, 60) * GIB,
                "verified": rng.random() > 0.2,
                "protected": rng.random() > 0.85,
                "comment": f"Automated backup of {guest['name']}",
                "owner": rng.choice(OWNERS),
                "files": ["index.json.blob", "drive-scsi0.img.fidx"],
            })

    # Host configuration archives live under VMID 0
    for node in NODES:
        taken = now - timedelta(hours=rng.randint(1, 24 * 7))
        backups.append({
            "vmid": "0",
            "backupType": "host",
            "instance": BACKUP_SERVERS[0],
            "datastore": DATASTORES[0],
            "namespace": "root",
            "backupTime": _iso(taken),
            "size": rng.randint(10, 80) * 1024 * 1024,
            "verified": True,
            "comment": f"{node} host config",
            "owner": "root@pam",
            "files": [{"filename": "pve-etc.pxar.didx", "crypt-mode": "none"}],
        })
    return backups


def make_storage_backups(
    rng: random.Random,
    guests: list[dict[str, Any]],
    remote: list[dict[str, Any]],
    now: datetime,
) -> list[dict[str, Any]]:
    backups = []
    for guest in guests:
        if rng.random() > 0.5:
            continue
        kind = "qemu" if guest["type"] == "qemu" else "lxc"
        taken = now - timedelta(hours=rng.randint(1, 24 * 30))
        stamp = taken.strftime("%Y_%m_%d-%H_%M_%S")
        backups.append({
            "vmid": guest["vmid"],
            "node": guest["node"],
            "instance": INSTANCE,
            "type": kind,
            "storage": "local",
            "volid": f"local:backup/vzdump-{kind}-{guest['vmid']}-{stamp}.vma.zst",
            "ctime": int(taken.timestamp()),
            "size": rng.randint(1, 40) * GIB,
            "notes": guest["name"] if rng.random() > 0.3 else "",
            "protected": rng.random() > 0.9,
        })

    # The platform also lists archives of storages backed by the backup server
    for archive in rng.sample(remote, k=min(len(remote), max(1, len(remote) // 4))):
        if archive["vmid"] == "0":
            continue
        taken = datetime.strptime(archive["backupTime"], "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
        kind = "qemu" if archive["backupType"] == "vm" else "lxc"
        backups.append({
            "vmid": int(archive["vmid"]),
            "node": rng.choice(NODES),
            "instance": INSTANCE,
            "type": kind,
            "storage": "pbs-store",
            "volid": f"pbs-store:backup/{archive['backupType']}/{archive['vmid']}/{archive['backupTime']}",
            "ctime": int(taken.timestamp()),
            "size": archive["size"],
            "isPBS": True,
            "verified": archive["verified"],
        })

    # Templates and ISOs share the storage listing but are not backups
    backups.append({
        "vmid": 0, "node": NODES[0], "instance": INSTANCE, "type": "vztmpl",
        "storage": "local", "volid": "local:vztmpl/debian-12-standard_12.2-1_amd64.tar.zst",
        "ctime": int(now.timestamp()), "size": 120 * 1024 * 1024,
    })
    return backups


def make_mail_gateway_backups(rng: random.Random, now: datetime) -> list[dict[str, Any]]:
    backups = []
    for i in range(rng.randint(2, 5)):
        taken = now - timedelta(days=i, hours=rng.randint(0, 6))
        backups.append({
            "id": f"pmg-{i}",
            "instance": "mailgw",
            "node": "pmg1",
            "filename": f"pmg-backup_{taken:%Y_%m_%d}_{rng.randint(1000, 9999)}.tgz",
            "backupTime": _iso(taken),
            "size": rng.randint(1, 20) * 1024 * 1024,
        })
    return backups


def generate_state(seed: int, guest_count: int, now: datetime | None = None) -> dict[str, Any]:
    """Build the whole state dump deterministically from *seed*."""
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)

    vms, containers = make_guests(rng, guest_count)
    guests = vms + containers
    remote = make_remote_backups(rng, guests, now)

    return {
        "nodes": [
            {"id": f"{INSTANCE}-{node}", "instance": INSTANCE, "name": node} for node in NODES
        ],
        "vms": vms,
        "containers": containers,
        "pbs": [
            {
                "name": server,
                "datastores": [
                    {"name": ds, "deduplicationFactor": round(rng.uniform(1.2, 8.0), 2)}
                    for ds in DATASTORES
                ],
            }
            for server in BACKUP_SERVERS
        ],
        "backups": {
            "pve": {
                "guestSnapshots": make_snapshots(rng, guests, now),
                "storageBackups": make_storage_backups(rng, guests, remote, now),
            },
            "pbs": remote,
            "pmg": make_mail_gateway_backups(rng, now),
        },
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a mock monitoring state dump.")
    parser.add_argument("output", help="Where to write the JSON dump")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--guests", type=int, default=24, help="Number of guests (default: 24)")
    args = parser.parse_args()

    if args.guests < 1:
        print("Error: --guests must be at least 1")
        return 1

    state = generate_state(args.seed, args.guests)
    out_path = Path(args.output)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(state, f, ensure_ascii=False, indent=2)

    backups = state["backups"]
    print(f"Written to {out_path}")
    print(
        f"  {len(backups['pve']['guestSnapshots'])} snapshots, "
        f"{len(backups['pve']['storageBackups'])} storage backups, "
        f"{len(backups['pbs'])} backup server archives, "
        f"{len(backups['pmg'])} mail gateway backups"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
