"""
Realtime 이벤트 이름 / 대상(channels, roles) 계산: 순수 함수
"""
from __future__ import annotations

import itertools
import re
from typing import Any

from src.domain.rendition.entities import Bucket, File

_RE_PARAM = re.compile(r"^\[(\w+)\]$")
_RE_READ = re.compile(r'^read\("(.+)"\)$')


def generate_events(pattern: str, params: dict[str, str]) -> list[str]:
    """
    'videos.[videoId].renditions.[renditionId].update' →
      첫 번째는 구체 이벤트, 이후 각 파라미터를 '*' 로 치환한 조합,
      action 을 뗀 조합, 상위 리소스 prefix 순.
    """
    parts = pattern.split(".")
    choices: list[tuple[str, ...]] = []
    for part in parts:
        m = _RE_PARAM.match(part)
        if m:
            name = m.group(1)
            if name not in params:
                raise ValueError(f"missing event param: {name}")
            choices.append((str(params[name]), "*"))
        else:
            choices.append((part,))

    events: list[str] = []
    for combo in itertools.product(*choices):
        events.append(".".join(combo))
        # action 제외 (videos.x.renditions.y)
        events.append(".".join(combo[:-1]))
        # 상위 리소스 (videos.x)
        for i in range(len(combo) - 3, 1, -2):
            events.append(".".join(combo[:i]))

    # product 첫 조합이 구체 이벤트 → 중복 제거 후에도 맨 앞
    seen: set[str] = set()
    ordered = []
    for e in events:
        if e and e not in seen:
            seen.add(e)
            ordered.append(e)
    return ordered


def merge_permissions(bucket: Bucket, file: File) -> list[str]:
    """fileSecurity 버킷이면 bucket + file, 아니면 bucket 만."""
    if bucket.file_security:
        return list(bucket.permissions or []) + list(file.permissions or [])
    return list(bucket.permissions or [])


def resolve_target(event: str, payload: dict[str, Any]) -> dict[str, list[str]]:
    """이벤트 / payload 권한으로 channels, roles 결정."""
    parts = event.split(".")
    # videos, videos.<id>, videos.<id>.renditions.<id>
    channels: list[str] = [parts[0]]
    for i in range(2, len(parts), 2):
        channels.append(".".join(parts[:i]))

    roles: list[str] = []
    for permission in payload.get("$permissions") or []:
        m = _RE_READ.match(str(permission))
        if m and m.group(1) not in roles:
            roles.append(m.group(1))
    return {"channels": channels, "roles": roles}
