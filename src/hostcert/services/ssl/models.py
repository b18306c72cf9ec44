"""Record types for hostname certificates.

``HostnameRecord`` is the authority's view of a custom hostname and keeps the
full decoded payload so nothing the authority reports is lost on the way to a
client. ``CertificateRecord`` is the row cached in the local store. Status is
an opaque string in both: the vocabulary belongs to the authority.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

__all__ = ["PENDING_STATUS", "HostnameRecord", "CertificateRecord"]

PENDING_STATUS = "pending"


@dataclass(frozen=True, slots=True)
class HostnameRecord:
    id: str
    hostname: str
    status: str | None = None
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "HostnameRecord":
        record_id = payload.get("id")
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("authority record has no id")
        hostname = payload.get("hostname")
        status = payload.get("status")
        return cls(
            id=record_id,
            hostname=str(hostname) if hostname is not None else "",
            status=str(status) if status is not None else None,
            payload=dict(payload),
        )

    def as_dict(self) -> dict[str, Any]:
        data = dict(self.payload)
        data["id"] = self.id
        data["hostname"] = self.hostname
        data["status"] = self.status
        return data


@dataclass(frozen=True, slots=True)
class CertificateRecord:
    id: str
    hostname: str
    status: str | None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CertificateRecord":
        return cls(
            id=row["id"],
            hostname=row["hostname"],
            status=row["status"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @classmethod
    def from_authority(cls, record: HostnameRecord) -> "CertificateRecord":
        return cls(id=record.id, hostname=record.hostname, status=record.status)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "hostname": self.hostname,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
