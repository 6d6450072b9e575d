"""Identity resolution: guest classification, name lookup and dedup keys."""

from __future__ import annotations

from typing import Iterable

from backupview.models.backup_record import GuestType
from backupview.models.source_records import GuestInfo
from backupview.utils import parse_int_prefix

DedupKey = tuple[str, ...]

_VM_TAGS = frozenset({"vm", "qemu"})
_CONTAINER_TAGS = frozenset({"ct", "lxc"})


class GuestRegistry:
    """
    Lookup of guest display names keyed by ``(vmid, instance)``.

    The instance is part of the key because two clusters may both run a
    guest 100.  VM entries win over container entries on a clash.
    """

    def __init__(self, guests: Iterable[GuestInfo] = ()) -> None:
        # (vmid, instance) -> (name, is_vm)
        self._names: dict[tuple[int, str], tuple[str, bool]] = {}
        for guest in guests:
            self.add(guest)

    def add(self, guest: GuestInfo) -> None:
        key = (guest.guest_id, guest.instance)
        is_vm = guest.kind.lower() in _VM_TAGS
        existing = self._names.get(key)
        if existing is not None and existing[1] and not is_vm:
            return
        self._names[key] = (guest.name, is_vm)

    def lookup(self, guest_id: int | str, instance: str) -> str | None:
        vmid = parse_int_prefix(guest_id)
        if vmid is None:
            return None
        entry = self._names.get((vmid, instance))
        return entry[0] or None if entry else None

    def __len__(self) -> int:
        return len(self._names)


def is_host_id(guest_id: int | str | None) -> bool:
    """VMID 0 marks a host configuration backup."""
    return parse_int_prefix(guest_id) == 0


def classify_guest_type(guest_id: int | str | None, kind_tag: str) -> GuestType:
    """
    Resolve the display type of a backup.

    Order: zero id or host tag, then VM tags, then container tags.
    Unknown tags default to LXC.
    """
    tag = (kind_tag or "").lower()
    if is_host_id(guest_id) or tag == "host":
        return GuestType.HOST
    if tag in _VM_TAGS:
        return GuestType.VM
    if tag in _CONTAINER_TAGS:
        return GuestType.LXC
    return GuestType.LXC


def canonical_guest_id(guest_id: int | str | None, guest_type: GuestType) -> int | str:
    """Numeric id for guests; Host ids are kept as reported."""
    if guest_type == GuestType.HOST:
        return guest_id if guest_id not in (None, "") else 0
    return parse_int_prefix(guest_id) or 0


def fallback_guest_name(guest_type: GuestType, guest_id: int | str) -> str:
    return f"{guest_type} {guest_id}"


def normalize_id_text(guest_id: int | str | None) -> str:
    """Stable text form of a guest id: "0100" and 100 both become "100"."""
    text = "" if guest_id is None else str(guest_id).strip()
    if text.lstrip("+-").isdigit():
        return str(int(text))
    return text


def guest_key(guest_id: int | str | None, timestamp: int) -> DedupKey:
    """Key shared by backup-server and storage-listing views of one archive."""
    return ("guest", normalize_id_text(guest_id), str(timestamp))


def host_config_key(record_id: str, instance: str, node: str, filename: str) -> DedupKey:
    if record_id:
        return ("host", record_id)
    return ("host", f"{instance}:{node}:{filename}")
